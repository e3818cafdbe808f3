#!/usr/bin/env python
"""Example script: implied volatility and Greeks around ATM for an NSE index.

Usage:
    python examples/atm_implied_vol.py --symbol BANKNIFTY --expiry 01-Jun-2023
    python examples/atm_implied_vol.py --symbol NIFTY --expiry 01-Jun-2023 --strikes 6 --rate 0.065

Prerequisites:
    1. Install dependencies: pip install -e .
    2. Optionally tune NSE_* settings in a .env file
"""
import argparse

from nse_chain import BlackScholes, NseClient, NseError, OptionRight
from nse_chain.greeks import years_to_expiry
from nse_chain.utils import setup_logging


def main():
    """Fetch one chain and print IV/Greeks for the strikes around ATM."""
    parser = argparse.ArgumentParser(description="Implied volatility around ATM")
    parser.add_argument("--symbol", type=str, default="BANKNIFTY", help="Index symbol")
    parser.add_argument("--expiry", type=str, required=True, help="Expiry date, e.g. 01-Jun-2023")
    parser.add_argument("--strikes", type=int, default=6, help="Strikes around ATM (default: 6)")
    parser.add_argument("--rate", type=float, default=0.07, help="Risk-free rate (default: 0.07)")
    args = parser.parse_args()

    setup_logging("WARNING")
    client = NseClient()
    try:
        chain = client.fetch_option_chain(args.symbol, args.expiry)
    except NseError as e:
        print(f"Error: {e}")
        return 1

    years = years_to_expiry(args.expiry)
    spot = chain.underlying_value
    print(f"{chain.symbol} {chain.expiry_date}  spot={spot:.2f}  ATM={chain.atm_strike()}  T={years * 365:.2f}d")
    print(f"{'Strike':>8} {'Leg':>4} {'LTP':>10} {'IV%':>8} {'Delta':>8} {'Theta':>9} {'Vega':>8}")

    for strike in chain.atm_strikes(args.strikes):
        record = chain.get(strike)
        if record is None:
            continue
        for right, leg in ((OptionRight.CALL, record.call), (OptionRight.PUT, record.put)):
            if leg is None or not leg.last_price:
                continue
            iv = BlackScholes.implied_vol(leg.last_price, spot, strike, years, args.rate, right)
            if iv is None:
                print(f"{strike:>8} {right.value:>4} {leg.last_price:>10.2f} {'n/a':>8}")
                continue
            greeks = BlackScholes.greeks(spot, strike, years, args.rate, iv, right)
            print(
                f"{strike:>8} {right.value:>4} {leg.last_price:>10.2f} {iv * 100:>8.2f} "
                f"{greeks.delta:>8.3f} {greeks.theta:>9.2f} {greeks.vega:>8.2f}"
            )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
