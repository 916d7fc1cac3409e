"""Crypto asset models.

A CryptoAsset snapshot is regenerated wholesale on each price refresh.
Its buy grade, grade reasoning and target price are computed fields: they
are derived through the grading engine from the stored metrics on every
access and serialization, so they can never drift from those metrics.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, computed_field

from grading import grade_crypto, target_price as project_target_price

Level = Literal["Low", "Medium", "High"]


class PricePoint(BaseModel):
    """One sample of the price history."""

    timestamp: datetime
    price: float
    volume: float | None = None


class Indicators(BaseModel):
    """Technical indicators computed from the price history."""

    rsi: float = Field(default=50.0, ge=0.0, le=100.0, description="14-period RSI")
    macd: str = Field(default="Neutral", description="MACD signal: Bullish, Bearish or Neutral")
    ma50: float = Field(default=0.0, description="Moving average over the last 50 samples")
    volume: str = Field(default="Low", description="Volume tier: Very High, High, Medium, Low")


class RiskAssessment(BaseModel):
    """Coarse risk levels for an asset."""

    volatility: Level = "Medium"
    liquidity: Level = "Medium"
    correlation: Level = "Medium"


class CryptoAsset(BaseModel):
    """A graded crypto asset.

    Attributes:
        market_cap_rank: Upstream market-cap rank, input to grading
        rank: Display rank within the snapshot, reassigned on each refresh
    """

    id: str
    symbol: str
    name: str
    price: float
    change_24h: float = Field(default=0.0, description="24h change in percent")
    change_value_24h: float = Field(default=0.0, description="24h change in USD")
    market_cap: float = 0.0
    volume_24h: float = 0.0
    market_cap_rank: int | None = None
    rank: int = Field(default=0, ge=0)
    last_updated: datetime
    price_history: list[PricePoint] = Field(default_factory=list)
    indicators: Indicators = Field(default_factory=Indicators)
    risk_assessment: RiskAssessment = Field(default_factory=RiskAssessment)

    @computed_field
    @property
    def buy_grade(self) -> str:
        return grade_crypto(self.market_cap, self.change_24h, self.volume_24h, self.market_cap_rank)[0]

    @computed_field
    @property
    def grade_reasoning(self) -> str:
        return grade_crypto(self.market_cap, self.change_24h, self.volume_24h, self.market_cap_rank)[1]

    @computed_field
    @property
    def target_price(self) -> float:
        return project_target_price(self.price, self.change_24h)

    def __str__(self) -> str:
        return f"CryptoAsset({self.symbol}, {self.price:.2f}, {self.buy_grade})"
