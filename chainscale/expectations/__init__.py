from .consensus_liveness import (
    ConsensusLiveness as ConsensusLiveness,
    LivenessTracker as LivenessTracker,
    StallWindow as StallWindow,
    effective_lag_allowance as effective_lag_allowance,
)
