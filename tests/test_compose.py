"""
Tests for the compose backend.

docker is replaced by a MockCommandRunner and the node APIs behind the
published ports by respx routes.
"""

import pathlib

import msgspec
import pytest
import respx

from chainscale.runners import CommandResult
from chainscale.runners.compose import (
    ComposeCommands,
    ComposeDeployer,
    ComposeUnavailableError,
    PortDiscoveryError,
    compose_project_name,
    render_compose,
    render_prometheus_config,
)
from chainscale.scenario import Capability, DeploymentError, Scenario
from chainscale.topology import NodeId, NodePorts, TopologyConfig, WalletConfig, generate_topology

from tests.mocks import MockCommandRunner, mock_node_routes

COMPOSE_FILE = pathlib.Path("/tmp/chainscale-test/docker-compose.json")
COMPOSE_PREFIX = f"docker compose -f {COMPOSE_FILE} -p chainscale-abc"


def ok(stdout: str = "") -> CommandResult:
    return CommandResult(args=("docker",), return_code=0, stdout=stdout)


def topology(validators: int = 1, executors: int = 1):
    return generate_topology(
        TopologyConfig.with_node_numbers(validators, executors),
        WalletConfig(),
        hostname=lambda node: node.label,
    )


def scenario() -> Scenario:
    return Scenario(
        topology=TopologyConfig.with_node_numbers(1, 1),
        wallets=WalletConfig(),
        duration=1.0,
    )


def deployer(commands: MockCommandRunner, tmp_path: pathlib.Path, **kwargs) -> ComposeDeployer:
    return ComposeDeployer(
        commands=commands,
        workspace_root=str(tmp_path),
        readiness_timeout=1.0,
        readiness_poll_interval=0.01,
        block_feed_interval=0.01,
        **kwargs,
    )


class TestComposeDescriptor:
    """Test compose file rendering."""

    def test_services_and_published_ports(self):
        generated = topology()
        host_ports = [NodePorts(api=41000, testing=41001), NodePorts(api=42000, testing=42001)]

        descriptor = render_compose(generated, "node:test", host_ports, "prom:test", 49090, "abc")

        assert descriptor["name"] == "chainscale-abc"
        assert set(descriptor["services"]) == {"validator-0", "executor-0", "prometheus"}

        validator = descriptor["services"]["validator-0"]
        config = generated.get(NodeId.validator(0))
        assert validator["image"] == "node:test"
        assert validator["ports"] == [
            f"41000:{config.api_port}",
            f"41001:{config.testing_http_port}",
        ]
        assert validator["labels"]["chainscale.deployment"] == "abc"

        prometheus = descriptor["services"]["prometheus"]
        assert prometheus["depends_on"] == ["validator-0", "executor-0"]
        assert prometheus["ports"][0].startswith("49090:")

    def test_prometheus_scrapes_every_node(self):
        generated = topology(validators=2, executors=1)

        config = render_prometheus_config(generated)

        [targets] = config["scrape_configs"][0]["static_configs"]
        assert len(targets["targets"]) == 3
        assert targets["targets"][0].startswith("validator-0:")

    def test_project_name(self):
        assert compose_project_name("abc") == "chainscale-abc"


class TestComposeCommands:
    """Test docker compose invocations."""

    @pytest.mark.asyncio
    async def test_project_scoped_arguments(self):
        commands = MockCommandRunner()
        compose = ComposeCommands("chainscale-abc", COMPOSE_FILE, commands=commands)

        await compose.up()
        await compose.up("validator-0")
        await compose.restart("validator-0")
        await compose.stop("executor-0")
        await compose.down()

        prefix = ["docker", "compose", "-f", str(COMPOSE_FILE), "-p", "chainscale-abc"]
        assert commands.commands == [
            prefix + ["up", "-d"],
            prefix + ["up", "-d", "--no-deps", "validator-0"],
            prefix + ["restart", "validator-0"],
            prefix + ["stop", "executor-0"],
            prefix + ["down", "--volumes", "--remove-orphans"],
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "stdout,port",
        [
            ("0.0.0.0:32768\n", 32768),
            ("0.0.0.0:32769\n[::]:32769\n", 32769),
            ("[::]:40001", 40001),
        ],
    )
    async def test_port_parsing(self, stdout, port):
        commands = MockCommandRunner(responses={f"{COMPOSE_PREFIX} port": ok(stdout)})
        compose = ComposeCommands("chainscale-abc", COMPOSE_FILE, commands=commands)

        assert await compose.port("validator-0", 18080) == port

    @pytest.mark.asyncio
    @pytest.mark.parametrize("stdout", ["", "\n", "no port here"])
    async def test_port_discovery_failure(self, stdout):
        commands = MockCommandRunner(responses={f"{COMPOSE_PREFIX} port": ok(stdout)})
        compose = ComposeCommands("chainscale-abc", COMPOSE_FILE, commands=commands)

        with pytest.raises(PortDiscoveryError, match="validator-0:18080"):
            await compose.port("validator-0", 18080)


class TestComposeDeployer:
    """Test provisioning through the deployment template."""

    @pytest.mark.asyncio
    async def test_docker_unavailable(self, tmp_path):
        commands = MockCommandRunner(
            responses={
                "docker compose version": CommandResult(
                    args=("docker", "compose", "version"),
                    return_code=1,
                    stderr="docker: 'compose' is not a docker command.",
                )
            }
        )

        with pytest.raises(ComposeUnavailableError, match="not a docker command"):
            await deployer(commands, tmp_path).ensure_docker()

    @pytest.mark.asyncio
    async def test_missing_docker_binary(self, tmp_path):
        commands = MockCommandRunner(
            responses={"docker compose version": FileNotFoundError("docker")}
        )

        with pytest.raises(DeploymentError) as error:
            await deployer(commands, tmp_path).deploy(scenario())

        assert "ComposeUnavailableError" in error.value.causes[0].cause
        assert len(commands.commands) == 1

    @respx.mock
    @pytest.mark.asyncio
    async def test_deploy_control_and_release(self, tmp_path):
        mock_node_routes()
        commands = MockCommandRunner(responses={"docker compose -f": ok("0.0.0.0:41000\n")})

        runner = await deployer(commands, tmp_path).deploy(scenario())

        [workspace] = list(tmp_path.iterdir())
        assert sorted(path.name for path in workspace.iterdir()) == [
            "docker-compose.json",
            "executor-0.json",
            "prometheus.json",
            "validator-0.json",
        ]
        descriptor = msgspec.json.decode((workspace / "docker-compose.json").read_bytes())
        assert descriptor["name"] == f"chainscale-{runner.deployment_id}"

        assert commands.commands[0] == ["docker", "compose", "version"]
        assert any(command[-2:] == ["up", "-d"] for command in commands.commands)
        assert runner.context.telemetry.prometheus_url == "http://127.0.0.1:41000"
        assert runner.context.capabilities() == frozenset(
            {Capability.NODE_CONTROL, Capability.TELEMETRY}
        )

        await runner.context.node_control.restart(NodeId.executor(0))
        assert commands.commands[-1][-2:] == ["restart", "executor-0"]

        await runner.release()

        assert commands.commands[-1][-3:] == ["down", "--volumes", "--remove-orphans"]
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_failed_port_discovery_tears_down(self, tmp_path):
        commands = MockCommandRunner(responses={"docker compose -f": ok("")})

        with pytest.raises(DeploymentError) as error:
            await deployer(commands, tmp_path).deploy(scenario())

        assert "PortDiscoveryError" in error.value.causes[0].cause
        assert commands.commands[-1][-3:] == ["down", "--volumes", "--remove-orphans"]
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_preserved_deployment_is_left_running(self, tmp_path):
        commands = MockCommandRunner(responses={"docker compose -f": ok("")})

        with pytest.raises(DeploymentError):
            await deployer(commands, tmp_path, preserve=True).deploy(scenario())

        assert not any("down" in command for command in commands.commands)
        assert len(list(tmp_path.iterdir())) == 1
