from .chaos import (
    RandomRestartWorkload as RandomRestartWorkload,
    RestartRecord as RestartRecord,
)
from .data_availability import (
    DaInclusionExpectation as DaInclusionExpectation,
    DataAvailabilityWorkload as DataAvailabilityWorkload,
    per_channel_blob_target as per_channel_blob_target,
    planned_blob_count as planned_blob_count,
    planned_channel_count as planned_channel_count,
    planned_channel_ids as planned_channel_ids,
)
from .transaction import (
    TransactionStats as TransactionStats,
    TransactionWorkload as TransactionWorkload,
    TxInclusionExpectation as TxInclusionExpectation,
)
from .util import (
    BlockCapture as BlockCapture,
    find_channel_op as find_channel_op,
    submit_transaction_via_cluster as submit_transaction_via_cluster,
    wait_for_channel_op as wait_for_channel_op,
)
