"""
Options chain processing and normalization.

Raw options data is messy. This module:
1. Normalizes column names and data types
2. Drops rows that cannot be priced
3. Converts rows into immutable OptionContract records
"""
import pandas as pd
import numpy as np
from typing import Dict, List
import logging

from .models import OptionContract

logger = logging.getLogger(__name__)


class OptionsChain:
    """
    Processed options chain for one underlying.

    Built from the combined calls/puts DataFrame produced by DataFetcher.
    """

    COLUMN_MAPPING = {
        'contractSymbol': 'contract_symbol',
        'strike': 'strike',
        'lastPrice': 'last_price',
        'bid': 'bid',
        'ask': 'ask',
        'volume': 'volume',
        'openInterest': 'open_interest',
        'impliedVolatility': 'implied_volatility',
        'inTheMoney': 'in_the_money',
    }

    REQUIRED_COLUMNS = ['strike', 'bid', 'ask', 'expiration', 'option_type']

    def __init__(self, raw_data: pd.DataFrame):
        """
        Initialize with raw options data.

        Args:
            raw_data: DataFrame with vendor columns plus 'expiration'
                      and 'option_type'
        """
        if raw_data is None or raw_data.empty:
            raise ValueError("Cannot initialize OptionsChain with empty data")

        missing = [c for c in self.REQUIRED_COLUMNS if c not in raw_data.columns]
        if missing:
            raise ValueError(f"Options data missing columns: {missing}")

        self.raw_data = raw_data.copy()
        self.processed = self._process()

    def _process(self) -> pd.DataFrame:
        """
        Process and normalize the raw options data.

        Returns:
            Clean DataFrame with standardized columns
        """
        df = self.raw_data.copy()

        rename_map = {k: v for k, v in self.COLUMN_MAPPING.items() if k in df.columns}
        df = df.rename(columns=rename_map)

        # Fill optional columns the vendor may omit
        defaults = {
            'contract_symbol': '',
            'last_price': 0.0,
            'volume': 0,
            'open_interest': 0,
            'implied_volatility': np.nan,
            'in_the_money': False,
        }
        for col, value in defaults.items():
            if col not in df.columns:
                df[col] = value

        df['strike'] = pd.to_numeric(df['strike'], errors='coerce')
        df['bid'] = pd.to_numeric(df['bid'], errors='coerce').fillna(0.0)
        df['ask'] = pd.to_numeric(df['ask'], errors='coerce').fillna(0.0)
        df['last_price'] = pd.to_numeric(df['last_price'], errors='coerce').fillna(0.0)
        df['volume'] = pd.to_numeric(df['volume'], errors='coerce').fillna(0).astype(int)
        df['open_interest'] = pd.to_numeric(df['open_interest'], errors='coerce').fillna(0).astype(int)
        df['implied_volatility'] = pd.to_numeric(df['implied_volatility'], errors='coerce')
        df['in_the_money'] = df['in_the_money'].fillna(False).astype(bool)
        df['option_type'] = df['option_type'].astype(str).str.lower()
        df['expiration'] = pd.to_datetime(df['expiration'], utc=True, errors='coerce')

        # Drop rows that cannot be priced
        df = df.dropna(subset=['strike', 'expiration'])
        df = df[(df['strike'] > 0) & df['option_type'].isin(['call', 'put'])].copy()

        logger.info(f"Processed options chain: {len(df)} contracts")
        return df

    def to_contracts(self) -> List[OptionContract]:
        """Convert processed rows into OptionContract records."""
        contracts = []
        for row in self.processed.itertuples(index=False):
            iv = row.implied_volatility
            contracts.append(OptionContract(
                contract_symbol=str(row.contract_symbol),
                option_type=row.option_type,
                strike=float(row.strike),
                expiration=row.expiration.to_pydatetime(),
                bid=float(row.bid),
                ask=float(row.ask),
                last_price=float(row.last_price),
                volume=int(row.volume),
                open_interest=int(row.open_interest),
                implied_volatility=float(iv) if pd.notna(iv) else np.nan,
                in_the_money=bool(row.in_the_money),
            ))
        return contracts

    def split_by_type(self) -> Dict[str, List[OptionContract]]:
        """
        Split the chain into calls and puts.

        Returns:
            {'calls': [...], 'puts': [...]}
        """
        contracts = self.to_contracts()
        return {
            'calls': [c for c in contracts if c.option_type == 'call'],
            'puts': [c for c in contracts if c.option_type == 'put'],
        }

    def summary(self) -> dict:
        """Get summary statistics."""
        return {
            'total_contracts': len(self.processed),
            'calls': len(self.processed[self.processed['option_type'] == 'call']),
            'puts': len(self.processed[self.processed['option_type'] == 'put']),
            'expirations': self.processed['expiration'].nunique(),
        }
