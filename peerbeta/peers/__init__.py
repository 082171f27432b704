"""
Peer Discovery & Ranking Engine.

This module provides functionality for:
- Collecting peer candidates from recommendations, the industry table and search
- Verifying industry membership of each candidate
- Ranking verified peers by market-cap proximity to the target

Main Classes:
    - CandidateAggregator: Merge and deduplicate candidate symbols
    - PeerRanker: Verify candidates and select the closest peers

Usage:
    from peerbeta.peers import CandidateAggregator, PeerRanker

    candidates = await CandidateAggregator(provider, reference).gather_candidates(
        "TCS.NS", "Information Technology Services", Exchange.NSE
    )
    peers = await PeerRanker(provider, reference).verify_and_rank(
        candidates, "TCS.NS", target_profile
    )
"""

from peerbeta.peers.candidates import CandidateAggregator, CandidateSource, PeerCandidate
from peerbeta.peers.ranker import PeerRanker, VerifiedPeer, cap_distance, rank_by_cap_proximity

__all__ = [
    "CandidateAggregator",
    "CandidateSource",
    "PeerCandidate",
    "PeerRanker",
    "VerifiedPeer",
    "cap_distance",
    "rank_by_cap_proximity",
]
