import argparse
import logging
import os

from backend.app.logging_config import setup_logging
from pipeline.pipeline import composite


def main():
    parser = argparse.ArgumentParser(description="Composite a garment onto a person photo with the local compositor")
    parser.add_argument("--person", required=True, help="Path to person image")
    parser.add_argument("--garment", required=True, help="Path to garment image")
    parser.add_argument("--category", default=None, help="top | bottom | dress | outerwear")
    parser.add_argument("--out", required=True, help="Output PNG path")
    args = parser.parse_args()

    setup_logging()
    with open(args.person, "rb") as f:
        person = f.read()
    with open(args.garment, "rb") as f:
        garment = f.read()

    result = composite(person, garment, args.category)

    os.makedirs(os.path.dirname(args.out) or ".", exist_ok=True)
    with open(args.out, "wb") as dst:
        dst.write(result.encode("PNG"))
    logging.getLogger(__name__).info("composited %dx%d image", result.width, result.height)
    print(f"Saved: {args.out}")


if __name__ == "__main__":
    main()
