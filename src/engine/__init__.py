from src.engine.ranking import rank
from src.engine.scoring import EfficiencyScorer, efficiency_label, travel_band
from src.engine.slot_generator import CandidateSlot, generate_candidates
from src.engine.suggestion_engine import SuggestionEngine, build_engine
from src.engine.travel import TravelEstimate, TravelStatus, TravelTimeEstimator

__all__ = [
    "SuggestionEngine", "build_engine",
    "CandidateSlot", "generate_candidates",
    "TravelTimeEstimator", "TravelEstimate", "TravelStatus",
    "EfficiencyScorer", "efficiency_label", "travel_band",
    "rank",
]
