# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Orchestration of one isolation scenario through its stages.
"""
from enum import Enum
from typing import Dict, List, Optional

from ..errors import StageOrderError
from ..MODELS.harness_config import HarnessConfig
from ..MODELS.mount_record import MountRecord
from ..MODELS.scenario import LaunchedContainer, PreparedImage, Scenario, ScenarioResult
from ..REGISTRY.registry_config import RegistryConfig
from ..RUNNERS.shell import Shell
from ..VERIFIERS.mount_verifier import MountUniquenessVerifier
from .container_manager import ContainerLaunchStage, ProbeExecutionStage
from .environment_manager import EnvironmentBootstrapper
from .image_manager import ImagePreparationStage


class Stage(str, Enum):
    """
    Progress of a scenario. Stages only move forward.
    """
    NEW = "new"
    BOOTSTRAPPED = "bootstrapped"
    IMAGES_PREPARED = "images_prepared"
    CONTAINERS_LAUNCHED = "containers_launched"
    PROBED = "probed"
    MOUNTS_VERIFIED = "mounts_verified"
    FAILED = "failed"


class ScenarioRunner:
    """
    Runs a scenario: bootstrap, prepare images, launch containers, probe them
    and verify their overlay mounts.
    """
    def __init__(self, scenario: Scenario, shell: Shell, config: Optional[HarnessConfig] = None):
        """
        Initializes the runner.

        :param scenario: The scenario to run.
        :param shell: Shell all external commands run in.
        :param config: Harness settings. Defaults to HarnessConfig().
        """
        self.scenario = scenario
        self.shell = shell
        self.config = config or HarnessConfig()
        self.registry = RegistryConfig.from_harness(self.config)

        self.bootstrapper = EnvironmentBootstrapper(shell, self.config, self.registry)
        self.preparation = ImagePreparationStage(shell, self.registry)
        self.launcher = ContainerLaunchStage(shell, self.registry, self.config.snapshotter)
        self.prober = ProbeExecutionStage(shell)
        self.verifier = MountUniquenessVerifier(
            shell, self.config.runtime_name, self.config.runtime_namespace
        )

        self.stage = Stage.NEW
        self.prepared: Dict[str, PreparedImage] = {}
        self.launched: List[LaunchedContainer] = []
        self.mounts: List[MountRecord] = []

    def _advance(self, expected: Stage, target: Stage, action):
        """
        Runs one stage transition.

        :param expected: Stage the scenario must be in.
        :param target: Stage reached when the action succeeds.
        :param action: Callable performing the stage's work.
        """
        if self.stage != expected:
            raise StageOrderError(
                f"cannot move to {target.value} from {self.stage.value} "
                f"(expected {expected.value})"
            )
        try:
            action()
        except Exception:
            self.stage = Stage.FAILED
            print(f"[{self.scenario.name}] Failed while moving to {target.value}")
            raise
        self.stage = target

    def bootstrap(self):
        self._advance(Stage.NEW, Stage.BOOTSTRAPPED, self.bootstrapper.bootstrap)

    def prepare_images(self):
        def action():
            self.prepared = self.preparation.prepare(self.scenario.containers)
        self._advance(Stage.BOOTSTRAPPED, Stage.IMAGES_PREPARED, action)

    def launch_containers(self):
        def action():
            self.launched = self.launcher.launch(self.scenario.containers, self.prepared)
        self._advance(Stage.IMAGES_PREPARED, Stage.CONTAINERS_LAUNCHED, action)

    def probe_containers(self):
        def action():
            self.prober.probe(self.scenario.containers, self.launched)
        self._advance(Stage.CONTAINERS_LAUNCHED, Stage.PROBED, action)

    def verify_mounts(self):
        def action():
            expected = [c.name for c in self.launched] if self.config.require_mounts else None
            self.mounts = self.verifier.verify(expected)
        self._advance(Stage.PROBED, Stage.MOUNTS_VERIFIED, action)

    def run(self) -> ScenarioResult:
        """
        Runs every stage in order. The first failure ends the scenario.

        :return: The launched containers and their verified mounts.
        """
        print(f"[{self.scenario.name}] Running {len(self.scenario.containers)} container(s)")
        self.bootstrap()
        self.prepare_images()
        self.launch_containers()
        self.probe_containers()
        self.verify_mounts()
        print(f"[{self.scenario.name}] Passed")
        return ScenarioResult(
            scenario=self.scenario.name,
            containers=self.launched,
            mounts=self.mounts,
        )
