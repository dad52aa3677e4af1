"""
PowerVS Restore - Create Instance Stage

Submits the creation request for the secondary (target) instance.

The submission (not the whole stage) is retried on transient errors.
The reply comes in one of a few known shapes; see InstanceResponseShape.
"""

from enum import Enum
from typing import Any, Dict

from pvs_restore.core.client import first_present
from pvs_restore.core.config import JobConfig
from pvs_restore.core.exceptions import DataShapeError
from pvs_restore.operations.base import BaseStage, StageResult
from pvs_restore.orchestration.state import RunState, Stage
from pvs_restore.utils.retry import retry_submission


class InstanceResponseShape(Enum):
    """
    Known shapes of the instance-creation reply.

    OBJECT: {"pvmInstanceID": "..."}
    LIST:   [{"pvmInstanceID": "..."}, ...]  (first element is ours)
    NESTED: {"pvmInstance": {"pvmInstanceID": "..."}}
    """

    OBJECT = 'object'
    LIST = 'list'
    NESTED = 'nested'


ID_KEY = 'pvmInstanceID'


def classify_instance_response(response: Any) -> InstanceResponseShape:
    """
    Work out which known shape a creation reply has.

    Raises:
        DataShapeError: If it matches none of them
    """
    if isinstance(response, list):
        if response and first_present(response[0], ID_KEY):
            return InstanceResponseShape.LIST
    elif isinstance(response, dict):
        if first_present(response, ID_KEY):
            return InstanceResponseShape.OBJECT
        if first_present(response.get('pvmInstance'), ID_KEY):
            return InstanceResponseShape.NESTED

    raise DataShapeError("Instance creation reply has no pvmInstanceID", payload=response)


def extract_instance_id(response: Any) -> str:
    """Get the new instance id from a creation reply of any known shape."""
    shape = classify_instance_response(response)
    if shape is InstanceResponseShape.LIST:
        return response[0][ID_KEY]
    if shape is InstanceResponseShape.NESTED:
        return response['pvmInstance'][ID_KEY]
    return response[ID_KEY]


def build_instance_spec(config: JobConfig) -> Dict[str, Any]:
    """Creation payload for the secondary instance (no storage attached)."""
    network = {'networkID': config.subnet_id}
    if config.private_ip:
        network['ipAddress'] = config.private_ip

    spec = {
        'serverName': config.secondary_name,
        'processors': config.processors,
        'memory': config.memory_gb,
        'procType': config.proc_type,
        'sysType': config.sys_type,
        'imageID': config.image_id,
        'deploymentType': config.deployment_type,
        'networks': [network],
    }
    if config.keypair_name:
        spec['keyPairName'] = config.keypair_name
    return spec


class CreateInstanceStage(BaseStage):
    """
    Creates the secondary instance and records its id.
    """

    stage = Stage.CREATE_INSTANCE

    @property
    def name(self) -> str:
        """Display name for this stage."""
        return "Create Instance"

    def execute(self, state: RunState) -> StageResult:
        spec = build_instance_spec(self.config)
        self._log_debug(f"Instance spec: {spec}")
        self._log_info("  Submitting instance creation request...")

        response = retry_submission(
            lambda: self.client.create_instance(spec),
            operation_name=self.name,
            attempts=self.config.create_attempts,
            delay=self.config.create_retry_delay,
            sleep=self.sleep,
            logger=self.logger,
        )

        self._log_debug(f"Creation reply shape: {classify_instance_response(response).value}")
        instance_id = extract_instance_id(response)
        state.set_instance_id(instance_id)

        self._log_info("  [OK] Instance creation request accepted")
        self._log_info(f"    Name:        {self.config.secondary_name}")
        self._log_info(f"    Instance ID: {instance_id}")
        self._log_info(f"    Private IP:  {self.config.private_ip or '(dhcp)'}")
        self._log_info(f"    Subnet:      {self.config.subnet_id}")
        self._log_info(f"    Processors:  {self.config.processors} ({self.config.proc_type})")
        self._log_info(f"    Memory:      {self.config.memory_gb} GB")
        self._log_info(f"    System Type: {self.config.sys_type}")

        return self._result(f"Instance {instance_id} requested", instanceId=instance_id)
