"""
Black-Scholes pricing, Greeks and implied volatility for index options.

Rates and volatilities are decimals (0.07, 0.15) and time is in years.
Theta is quoted per calendar day and vega per one volatility point.
"""
from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from scipy.optimize import brentq
from scipy.stats import norm

logger = logging.getLogger(__name__)

DAYS_PER_YEAR = 365.0
EXPIRY_FORMAT = "%d-%b-%Y"  # "01-Jun-2023"

# implied volatility search bounds
MIN_VOL = 1e-4
MAX_VOL = 5.0


class OptionRight(str, enum.Enum):
    CALL = "CE"
    PUT = "PE"


@dataclass(slots=True)
class Greeks:
    price: float
    delta: float
    gamma: float
    theta: float
    vega: float
    rho: float


def years_to_expiry(expiry_date: str, now: Optional[datetime] = None) -> float:
    """Calendar-day time to an NSE expiry string, floored at zero.

    Expiry is taken as 15:30 local time on the expiry day.
    """
    expiry = datetime.strptime(expiry_date, EXPIRY_FORMAT).replace(hour=15, minute=30)
    now = now or datetime.now()
    seconds = (expiry - now).total_seconds()
    return max(seconds, 0.0) / (DAYS_PER_YEAR * 24 * 3600)


def _intrinsic(spot: float, strike: float, right: OptionRight) -> float:
    if right == OptionRight.CALL:
        return max(spot - strike, 0.0)
    return max(strike - spot, 0.0)


class BlackScholes:
    """European option model on a non-dividend underlying."""

    @staticmethod
    def _d1d2(spot: float, strike: float, years: float, rate: float, sigma: float) -> tuple[float, float]:
        sqrt_t = math.sqrt(years)
        d1 = (math.log(spot / strike) + (rate + 0.5 * sigma**2) * years) / (sigma * sqrt_t)
        return d1, d1 - sigma * sqrt_t

    @staticmethod
    def _degenerate(years: float, sigma: float) -> bool:
        return years <= 0 or sigma <= 0

    @classmethod
    def price(cls, spot: float, strike: float, years: float, rate: float, sigma: float, right: OptionRight) -> float:
        if cls._degenerate(years, sigma):
            return _intrinsic(spot, strike, right)
        d1, d2 = cls._d1d2(spot, strike, years, rate, sigma)
        discount = math.exp(-rate * years)
        if right == OptionRight.CALL:
            return spot * norm.cdf(d1) - strike * discount * norm.cdf(d2)
        return strike * discount * norm.cdf(-d2) - spot * norm.cdf(-d1)

    @classmethod
    def delta(cls, spot: float, strike: float, years: float, rate: float, sigma: float, right: OptionRight) -> float:
        if cls._degenerate(years, sigma):
            if right == OptionRight.CALL:
                return 1.0 if spot > strike else 0.0
            return -1.0 if spot < strike else 0.0
        d1, _ = cls._d1d2(spot, strike, years, rate, sigma)
        if right == OptionRight.CALL:
            return float(norm.cdf(d1))
        return float(norm.cdf(d1) - 1.0)

    @classmethod
    def gamma(cls, spot: float, strike: float, years: float, rate: float, sigma: float) -> float:
        if cls._degenerate(years, sigma):
            return 0.0
        d1, _ = cls._d1d2(spot, strike, years, rate, sigma)
        return float(norm.pdf(d1) / (spot * sigma * math.sqrt(years)))

    @classmethod
    def theta(cls, spot: float, strike: float, years: float, rate: float, sigma: float, right: OptionRight) -> float:
        if cls._degenerate(years, sigma):
            return 0.0
        d1, d2 = cls._d1d2(spot, strike, years, rate, sigma)
        decay = -(spot * norm.pdf(d1) * sigma) / (2.0 * math.sqrt(years))
        carry = rate * strike * math.exp(-rate * years)
        if right == OptionRight.CALL:
            return float((decay - carry * norm.cdf(d2)) / DAYS_PER_YEAR)
        return float((decay + carry * norm.cdf(-d2)) / DAYS_PER_YEAR)

    @classmethod
    def vega(cls, spot: float, strike: float, years: float, rate: float, sigma: float) -> float:
        if cls._degenerate(years, sigma):
            return 0.0
        d1, _ = cls._d1d2(spot, strike, years, rate, sigma)
        return float(spot * norm.pdf(d1) * math.sqrt(years) / 100.0)

    @classmethod
    def rho(cls, spot: float, strike: float, years: float, rate: float, sigma: float, right: OptionRight) -> float:
        if cls._degenerate(years, sigma):
            return 0.0
        _, d2 = cls._d1d2(spot, strike, years, rate, sigma)
        discounted = strike * years * math.exp(-rate * years)
        if right == OptionRight.CALL:
            return float(discounted * norm.cdf(d2) / 100.0)
        return float(-discounted * norm.cdf(-d2) / 100.0)

    @classmethod
    def greeks(cls, spot: float, strike: float, years: float, rate: float, sigma: float, right: OptionRight) -> Greeks:
        return Greeks(
            price=cls.price(spot, strike, years, rate, sigma, right),
            delta=cls.delta(spot, strike, years, rate, sigma, right),
            gamma=cls.gamma(spot, strike, years, rate, sigma),
            theta=cls.theta(spot, strike, years, rate, sigma, right),
            vega=cls.vega(spot, strike, years, rate, sigma),
            rho=cls.rho(spot, strike, years, rate, sigma, right),
        )

    @classmethod
    def implied_vol(
        cls,
        market_price: float,
        spot: float,
        strike: float,
        years: float,
        rate: float,
        right: OptionRight,
        tol: float = 1e-8,
    ) -> Optional[float]:
        """Volatility that reproduces ``market_price``.

        Returns:
            The implied volatility, or None when the price cannot be reached
            by any volatility in ``[MIN_VOL, MAX_VOL]`` (or time has run out).
        """
        if years <= 0 or market_price <= 0:
            return None

        def objective(sigma: float) -> float:
            return cls.price(spot, strike, years, rate, sigma, right) - market_price

        low, high = objective(MIN_VOL), objective(MAX_VOL)
        if low > 0 or high < 0:
            logger.debug(
                "Price %.4f outside attainable range for %s strike=%.2f",
                market_price,
                right.value,
                strike,
            )
            return None
        if low == 0:
            return MIN_VOL
        if high == 0:
            return MAX_VOL
        return float(brentq(objective, MIN_VOL, MAX_VOL, xtol=tol))

    @staticmethod
    def put_call_parity(call_price: float, put_price: float, spot: float, strike: float, years: float, rate: float) -> float:
        """``C - P - (S - K e^{-rT})``; zero when the two prices are consistent."""
        return call_price - put_price - (spot - strike * math.exp(-rate * years))


__all__ = ["OptionRight", "Greeks", "BlackScholes", "years_to_expiry", "DAYS_PER_YEAR"]
