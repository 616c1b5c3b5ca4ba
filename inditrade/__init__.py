"""InditradeSim — paper trading against live NSE quotes."""
