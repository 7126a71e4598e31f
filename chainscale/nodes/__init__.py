from .api_client import ApiClient as ApiClient
from .errors import (
    ApiClientError as ApiClientError,
    NoReachableNodeError as NoReachableNodeError,
)
from .lifecycle import (
    NodeHandle as NodeHandle,
    NodeLifecycle as NodeLifecycle,
)
from .models import (
    Block as Block,
    BlockHeader as BlockHeader,
    ChannelBlob as ChannelBlob,
    ChannelInscribe as ChannelInscribe,
    ConsensusInfo as ConsensusInfo,
    LedgerOutput as LedgerOutput,
    MembershipResponse as MembershipResponse,
    NetworkInfo as NetworkInfo,
    SignedTransaction as SignedTransaction,
)
from .node_clients import NodeClients as NodeClients
