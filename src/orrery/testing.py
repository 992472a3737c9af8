"""
Testing Utilities
=================

Literals with an explicit error bound on their last significant digit, for
writing expected values in tests the way they are printed in the literature.

    >>> x = ApproximateQuantity.parse("1.2345e-3", ulp=2)
    >>> 1.2346e-3 in x
    True

Hexadecimal literals (``"0x1.8p1"``) accept an ulp up to 15, the others up
to 9.
"""
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ApproximateQuantity:
    """
    A value known to within a number of units of its last written digit.

    Parameters
    ----------
    representation : str
        The literal as written
    ulp : int
        Error on the last significant digit of the literal
    min, max : float
        Bounds of the interval of acceptable values, unit included
    unit : float
        Multiplier applied to the literal (default 1.0)
    """

    representation: str
    ulp: int
    min: float
    max: float
    unit: float = 1.0

    def __post_init__(self):
        if not self.min <= self.max:
            raise ValueError(
                f"Empty interval [{self.min}, {self.max}] for "
                f"'{self.representation}'"
            )

    @classmethod
    def parse(cls, representation: str, ulp: int) -> 'ApproximateQuantity':
        """
        Parse a decimal or hexadecimal literal with its error in ulps.

        The error is the literal with all its digits before the exponent set
        to zero, except the last significant one which is set to `ulp`.

        Raises
        ------
        ValueError
            If the literal has no significant digit, or if the ulp does not
            fit in one digit of its base
        """
        is_hexadecimal = representation[:2] in ('0x', '0X')
        exponent_markers = 'pP' if is_hexadecimal else 'eE'
        significant = '123456789abcdefABCDEF' if is_hexadecimal else '123456789'

        error = list(representation)
        last_digit_index: Optional[int] = None
        for i, c in enumerate(error):
            if c in exponent_markers:
                break
            if c in significant and not (is_hexadecimal and i < 2):
                error[i] = '0'
                last_digit_index = i
        if last_digit_index is None:
            raise ValueError(f"No significant digit in '{representation}'")

        if 1 <= ulp <= 9:
            error[last_digit_index] = str(ulp)
        elif 10 <= ulp <= 15 and is_hexadecimal:
            error[last_digit_index] = 'ABCDEF'[ulp - 10]
        else:
            raise ValueError(
                f"Invalid ulp {ulp} for '{representation}': decimal literals "
                f"accept 1 to 9, hexadecimal literals 1 to 15"
            )

        if is_hexadecimal:
            value = float.fromhex(representation)
            delta = abs(float.fromhex(''.join(error)))
        else:
            value = float(representation)
            delta = abs(float(''.join(error)))
        return cls(representation, ulp, value - delta, value + delta)

    def __contains__(self, value) -> bool:
        return self.min <= value <= self.max

    def __mul__(self, unit: float) -> 'ApproximateQuantity':
        bounds = sorted((self.min * unit, self.max * unit))
        return ApproximateQuantity(self.representation, self.ulp, *bounds,
                                   unit=self.unit * unit)

    __rmul__ = __mul__

    def __repr__(self):
        text = f"ApproximateQuantity('{self.representation}'({self.ulp}))"
        if self.unit != 1.0:
            text += f" * {self.unit}"
        return text
