from .config import (
    ConsensusParams as ConsensusParams,
    DaParams as DaParams,
    NetworkLayout as NetworkLayout,
    TopologyBuilder as TopologyBuilder,
    TopologyConfig as TopologyConfig,
)
from .generation import (
    GeneratedNodeConfig as GeneratedNodeConfig,
    GeneratedTopology as GeneratedTopology,
    NodePorts as NodePorts,
    PeerAddress as PeerAddress,
    allocate_local_ports as allocate_local_ports,
    find_expected_peer_counts as find_expected_peer_counts,
    generate_topology as generate_topology,
)
from .node import (
    NodeId as NodeId,
    NodeRole as NodeRole,
)
from .wallet import (
    WalletAccount as WalletAccount,
    WalletConfig as WalletConfig,
    WalletRegistry as WalletRegistry,
)
