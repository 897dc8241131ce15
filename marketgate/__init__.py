"""Market-data gateway fronting the CoinGlass API."""
