"""
Fee Calculator
Proportional protocol fee on the settlement-asset leg of a trade
"""

BPS_DENOMINATOR = 10_000
MAX_FEE_BASIS_POINTS = 10_000


def calculate_fee(amount: int, basis_points: int) -> int:
    """
    Protocol cut of a settlement amount, floored

    Args:
        amount: Settlement amount in lamports
        basis_points: Fee rate in 1/10_000 units, validated by GlobalConfig

    Returns:
        floor(amount * basis_points / 10_000)

    Example:
        calculate_fee(999, 100)  # 9
    """
    return (amount * basis_points) // BPS_DENOMINATOR


def fee_percentage(basis_points: int) -> float:
    """Fee rate as a percentage, for display"""
    return basis_points / BPS_DENOMINATOR * 100
