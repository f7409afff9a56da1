from __future__ import annotations

import argparse
import os

import numpy as np
import pandas as pd


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--out", required=True)
    ap.add_argument("--rows", type=int, default=8)
    ap.add_argument("--seed", type=int, default=0)
    args = ap.parse_args()

    rng = np.random.default_rng(args.seed)

    catalog = {
        "Toyota": (["RAV4", "Camry", "Highlander"], 32000),
        "Honda": (["CR-V", "Accord", "Pilot"], 31000),
        "Hyundai": (["Tucson", "Ioniq 5", "Santa Fe"], 30000),
        "BMW": (["X3", "330i", "i4"], 50000),
    }
    tiers = ["Base", "Sport", "Limited", "Premium"]
    dealers = ["Northside Motors", "Valley Auto", "Metro Imports", ""]
    terms = np.array([24, 36, 39, 48])

    makes = rng.choice(list(catalog), size=args.rows)
    model = [rng.choice(catalog[m][0]) for m in makes]
    base_price = np.array([catalog[m][1] for m in makes], dtype=float)
    tier = rng.choice(tiers, size=args.rows)
    tier_bump = np.select(
        [tier == "Sport", tier == "Limited", tier == "Premium"],
        [1500, 4500, 7000],
        default=0,
    ).astype(float)

    msrp = (base_price + tier_bump + rng.normal(0, 1500, size=args.rows)).round(-2)
    term = rng.choice(terms, size=args.rows)
    # Residuals fall about half a point per month past 36, with dealer-to-dealer noise.
    residual = (60.0 - (term - 36) * 0.5 + rng.normal(0, 2.5, size=args.rows)).clip(40, 70).round(1)
    apr = rng.uniform(1.5, 8.0, size=args.rows).round(2)
    discount = rng.uniform(0, 8, size=args.rows).round(1)

    df = pd.DataFrame(
        {
            "id": [f"sample-{i + 1}" for i in range(args.rows)],
            "carMake": makes,
            "carModel": model,
            "carTier": tier,
            "dealership": rng.choice(dealers, size=args.rows),
            "msrp": msrp,
            "discount": discount,
            "residualPercent": residual,
            "apr": apr,
            "leaseTerm": term.astype(int),
            "salesTaxPercent": rng.choice([0.0, 6.0, 7.0, 8.25], size=args.rows),
            "tagTitleFilingFees": rng.integers(150, 600, size=args.rows),
            "handlingFees": 700,
            "otherFees": 0,
            "downPayment": rng.choice([0, 1000, 2000, 3000], size=args.rows),
            "ficoScore8": rng.integers(560, 840, size=args.rows),
        }
    )

    os.makedirs(os.path.dirname(args.out) or ".", exist_ok=True)
    df.to_csv(args.out, index=False)
    print(f"wrote {args.out} rows={len(df)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
