"""
Synthetic Product Stats Dataset Generator
Writes a flat product list shaped like the stats API response.
"""

import argparse
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from stats_dashboard.data.generators import ProductStatsGenerator

OUTPUT_DIR = Path(__file__).parent.parent / "data" / "generated"


# ==========================================
# PRODUCTS
# ==========================================
def generate_products(n=100000, seed=42, suppliers=8, brands=4):
    print(f"📊 Generating {n:,} products...")

    generator = ProductStatsGenerator(seed=seed, suppliers=suppliers, brands_per_supplier=brands)
    rows = generator.generate_raw(n)

    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    path = OUTPUT_DIR / "products.json"
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(rows, fh)

    print(f"   ✅ products.json: {n:,} rows")
    return path


# ==========================================
# MAIN
# ==========================================
def main():
    parser = argparse.ArgumentParser(description="Generate synthetic product stats")
    parser.add_argument("-n", "--products", type=int, default=100000)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--suppliers", type=int, default=8)
    parser.add_argument("--brands", type=int, default=4)
    args = parser.parse_args()

    print("=" * 60)
    print("📈 Product Stats Dataset Generator")
    print("=" * 60 + "\n")

    path = generate_products(args.products, args.seed, args.suppliers, args.brands)

    size = path.stat().st_size / 1024 / 1024
    print("\n" + "=" * 60)
    print("✅ Dataset Generation Complete!")
    print("=" * 60)
    print(f"\n📁 Output: {path} ({size:.2f} MB)\n")


if __name__ == "__main__":
    main()
