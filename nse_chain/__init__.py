"""Retrieval, modelling and ranking of NSE index option chains."""

from .config import Settings, load_settings
from .errors import (
    AuthRequired,
    MalformedPayload,
    NetworkError,
    NseError,
    RateLimited,
    ServerError,
    UnknownExpiry,
)
from .greeks import BlackScholes, OptionRight
from .nse_client import NseClient, STRIKE_STEPS
from .option_chain import OptionChain, OptionLeg, StrikeRecord
from .participants import ParticipantPosition, ParticipantStatsStore, build_daily_stats, parse_participant_csv
from .ranking import RankedChainView, RankedStrikeView, RankingEngine, RankingWeights
from .response_parser import ChainResponseParser
from .session_client import ChainSession, SessionClient, SessionState

__all__ = [
    "Settings",
    "load_settings",
    "NseError",
    "NetworkError",
    "AuthRequired",
    "RateLimited",
    "ServerError",
    "MalformedPayload",
    "UnknownExpiry",
    "BlackScholes",
    "OptionRight",
    "NseClient",
    "STRIKE_STEPS",
    "OptionChain",
    "OptionLeg",
    "StrikeRecord",
    "ParticipantPosition",
    "ParticipantStatsStore",
    "build_daily_stats",
    "parse_participant_csv",
    "RankedChainView",
    "RankedStrikeView",
    "RankingEngine",
    "RankingWeights",
    "ChainResponseParser",
    "SessionClient",
    "SessionState",
    "ChainSession",
]
