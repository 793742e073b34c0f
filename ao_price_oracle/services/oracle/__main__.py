"""Module entrypoint for running the oracle service."""

from ao_price_oracle.services.oracle.main import main

if __name__ == "__main__":
    raise SystemExit(main())
