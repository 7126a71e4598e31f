from .block_feed import (
    BlockFeed as BlockFeed,
    BlockFeedTask as BlockFeedTask,
    BlockRecord as BlockRecord,
    BlockScanner as BlockScanner,
    BlockStats as BlockStats,
    BlockSubscription as BlockSubscription,
    spawn_block_feed as spawn_block_feed,
)
from .builder import (
    ChaosBuilder as ChaosBuilder,
    ChaosRestartBuilder as ChaosRestartBuilder,
    DataAvailabilityFlowBuilder as DataAvailabilityFlowBuilder,
    ScenarioBuilder as ScenarioBuilder,
    TransactionFlowBuilder as TransactionFlowBuilder,
    scenario_from_env as scenario_from_env,
)
from .capabilities import Capability as Capability
from .cleanup import (
    CallbackCleanup as CallbackCleanup,
    CleanupGuard as CleanupGuard,
    CleanupStack as CleanupStack,
)
from .context import (
    RunContext as RunContext,
    RunMetrics as RunMetrics,
    Telemetry as Telemetry,
)
from .deployer import (
    Deployer as Deployer,
    LaunchedDeployment as LaunchedDeployment,
    new_deployment_id as new_deployment_id,
)
from .errors import (
    BlockFeedClosedError as BlockFeedClosedError,
    CapabilityError as CapabilityError,
    CleanupError as CleanupError,
    DeploymentError as DeploymentError,
    ExpectationError as ExpectationError,
    NodeFailure as NodeFailure,
    ReadinessError as ReadinessError,
    RunError as RunError,
    ScenarioBuildError as ScenarioBuildError,
    Violation as Violation,
    ViolationKind as ViolationKind,
    WorkloadAbortError as WorkloadAbortError,
    WorkloadSetupError as WorkloadSetupError,
)
from .expectation import (
    Expectation as Expectation,
    ExpectationVerdict as ExpectationVerdict,
)
from .http_probe import (
    NodeReadiness as NodeReadiness,
    ReadinessTarget as ReadinessTarget,
    wait_for_http_ready as wait_for_http_ready,
)
from .node_control import (
    LifecycleNodeControl as LifecycleNodeControl,
    NodeControlHandle as NodeControlHandle,
)
from .results import (
    RunFailedError as RunFailedError,
    RunHandle as RunHandle,
    RunOutcome as RunOutcome,
    RunResult as RunResult,
    WorkloadReport as WorkloadReport,
)
from .runner import Runner as Runner
from .scenario import Scenario as Scenario
from .specs import (
    ChaosRestartWorkloadSpec as ChaosRestartWorkloadSpec,
    ConsensusLivenessSpec as ConsensusLivenessSpec,
    CustomExpectationSpec as CustomExpectationSpec,
    CustomWorkloadSpec as CustomWorkloadSpec,
    DataAvailabilityWorkloadSpec as DataAvailabilityWorkloadSpec,
    ExpectationKind as ExpectationKind,
    TransactionWorkloadSpec as TransactionWorkloadSpec,
    WorkloadKind as WorkloadKind,
)
from .workload import (
    Workload as Workload,
    WorkloadState as WorkloadState,
    sleep_or_stop as sleep_or_stop,
)
