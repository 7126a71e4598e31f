"""
chainscale: declarative integration testing for blockchain node clusters.

Describe a topology, attach workloads and expectations with
``ScenarioBuilder``, deploy it with a backend (local processes, docker
compose or kubernetes), and run it to get a verdict per expectation.
"""

from chainscale.env import Env as Env, load_env as load_env
from chainscale.errors import ChainscaleError as ChainscaleError
from chainscale.runners.compose import ComposeDeployer as ComposeDeployer
from chainscale.runners.k8s import K8sDeployer as K8sDeployer
from chainscale.runners.local import LocalDeployer as LocalDeployer
from chainscale.scenario import (
    Capability as Capability,
    Deployer as Deployer,
    Expectation as Expectation,
    ExpectationVerdict as ExpectationVerdict,
    RunContext as RunContext,
    RunHandle as RunHandle,
    Runner as Runner,
    RunResult as RunResult,
    Scenario as Scenario,
    ScenarioBuilder as ScenarioBuilder,
    Workload as Workload,
    scenario_from_env as scenario_from_env,
)
from chainscale.topology import (
    NetworkLayout as NetworkLayout,
    NodeId as NodeId,
    NodeRole as NodeRole,
    TopologyBuilder as TopologyBuilder,
    TopologyConfig as TopologyConfig,
)
