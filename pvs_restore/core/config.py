"""
PowerVS Restore - Configuration Management

This module builds the single immutable configuration value for a run.

Settings come from (highest priority first):
1. Explicit overrides (CLI flags)
2. Environment variables
3. An optional YAML config file
4. The defaults below
"""

import os
from dataclasses import dataclass, fields, asdict
from typing import Any, Dict, Mapping, Optional

import yaml

from pvs_restore.core.exceptions import ConfigurationError

# Version for the User-Agent header
VERSION = '1.0.0'

IAM_URL = 'https://iam.cloud.ibm.com/identity/token'


@dataclass(frozen=True)
class JobConfig:
    """
    Configuration for one provision/snapshot/clone/restore run.

    Constructed once at start and passed explicitly to everything that
    needs it. Stage code never reads the process environment.

    Example:
        config = load_config(overrides={'secondary_name': 'restore-lpar'})
        print(config.api_root)
    """

    # Authentication
    api_key: str = ''
    region: str = 'us-south'

    # Workspace
    crn: str = ''
    cloud_instance_id: str = ''
    api_version: str = '2024-02-28'

    # Instances
    primary_instance: str = ''  # Source of the snapshot (name or id)
    secondary_name: str = ''  # Instance provisioned by this run

    # Hardware spec for the secondary instance
    memory_gb: float = 2
    processors: float = 0.25
    proc_type: str = 'shared'
    sys_type: str = 's1022'
    image_id: str = 'IBMI-EMPTY'
    deployment_type: str = 'VMNoStorage'

    # Network spec
    subnet_id: str = ''
    private_ip: str = ''
    keypair_name: str = ''

    # Storage
    storage_tier: str = 'tier3'  # Must match the snapshot tier
    name_prefix: str = 'clone'

    # Polling (seconds unless noted)
    poll_interval: int = 30
    snapshot_poll_interval: int = 45
    status_poll_limit: int = 30  # attempts
    initial_wait: int = 45
    max_attach_wait: int = 420
    max_boot_wait: int = 1200
    max_snapshot_wait: int = 3600
    max_clone_wait: int = 7200
    max_volume_wait: int = 1200
    max_detach_wait: int = 240
    deletion_verify_delay: int = 5

    # Submission retries
    create_attempts: int = 3
    create_retry_delay: int = 5
    request_timeout: int = 60

    # Rollback
    delete_instance_on_rollback: bool = False

    # Follow-on cleanup job (Code Engine)
    run_cleanup_job: bool = False
    ce_project: str = 'IBMi'
    ce_job: str = 'prod-cleanup'

    # Logging / behaviour
    log_level: str = 'INFO'
    log_file: Optional[str] = None
    show_progress: bool = True
    skip_validation: bool = False

    @property
    def api_root(self) -> str:
        """Root URL of the regional pcloud API."""
        return f'https://{self.region}.power-iaas.cloud.ibm.com/pcloud'

    def validate(self):
        """
        Check required settings and tunables.

        Raises:
            ConfigurationError: On the first problem found
        """
        required = {
            'api_key': 'IBMCLOUD_API_KEY',
            'crn': 'PVS_CRN',
            'cloud_instance_id': 'PVS_CLOUD_INSTANCE_ID',
            'primary_instance': 'PVS_PRIMARY_INSTANCE',
            'secondary_name': 'PVS_SECONDARY_NAME',
            'subnet_id': 'PVS_SUBNET_ID',
        }
        for name, env_name in required.items():
            if not getattr(self, name):
                raise ConfigurationError(f"Missing required setting '{name}'", setting=env_name)

        positive = [
            'poll_interval', 'snapshot_poll_interval', 'status_poll_limit',
            'max_attach_wait', 'max_boot_wait', 'max_snapshot_wait',
            'max_clone_wait', 'max_volume_wait', 'max_detach_wait',
            'create_attempts', 'request_timeout',
        ]
        for name in positive:
            if getattr(self, name) <= 0:
                raise ConfigurationError(
                    f"'{name}' must be positive (got {getattr(self, name)})",
                    setting=ENV_VARS.get(name)
                )

        if self.memory_gb <= 0 or self.processors <= 0:
            raise ConfigurationError("memory_gb and processors must be positive")

    def redacted(self) -> Dict[str, Any]:
        """Settings as a dict with the API key masked (safe to log)."""
        data = asdict(self)
        if data['api_key']:
            data['api_key'] = '****' + data['api_key'][-4:]
        return data


# Environment variable for each setting
ENV_VARS = {
    'api_key': 'IBMCLOUD_API_KEY',
    'region': 'PVS_REGION',
    'crn': 'PVS_CRN',
    'cloud_instance_id': 'PVS_CLOUD_INSTANCE_ID',
    'api_version': 'PVS_API_VERSION',
    'primary_instance': 'PVS_PRIMARY_INSTANCE',
    'secondary_name': 'PVS_SECONDARY_NAME',
    'memory_gb': 'PVS_MEMORY_GB',
    'processors': 'PVS_PROCESSORS',
    'proc_type': 'PVS_PROC_TYPE',
    'sys_type': 'PVS_SYS_TYPE',
    'image_id': 'PVS_IMAGE_ID',
    'deployment_type': 'PVS_DEPLOYMENT_TYPE',
    'subnet_id': 'PVS_SUBNET_ID',
    'private_ip': 'PVS_PRIVATE_IP',
    'keypair_name': 'PVS_KEYPAIR_NAME',
    'storage_tier': 'PVS_STORAGE_TIER',
    'name_prefix': 'PVS_NAME_PREFIX',
    'poll_interval': 'POLL_INTERVAL',
    'snapshot_poll_interval': 'SNAPSHOT_POLL_INTERVAL',
    'status_poll_limit': 'STATUS_POLL_LIMIT',
    'initial_wait': 'INITIAL_WAIT',
    'max_attach_wait': 'MAX_ATTACH_WAIT',
    'max_boot_wait': 'MAX_BOOT_WAIT',
    'max_snapshot_wait': 'MAX_SNAPSHOT_WAIT',
    'max_clone_wait': 'MAX_CLONE_WAIT',
    'max_volume_wait': 'MAX_VOLUME_WAIT',
    'max_detach_wait': 'MAX_DETACH_WAIT',
    'create_attempts': 'CREATE_ATTEMPTS',
    'delete_instance_on_rollback': 'DELETE_INSTANCE_ON_ROLLBACK',
    'run_cleanup_job': 'RUN_CLEANUP_JOB',
    'ce_project': 'CE_PROJECT',
    'ce_job': 'CE_JOB',
    'log_level': 'LOG_LEVEL',
    'log_file': 'LOG_FILE',
}

_TRUE_VALUES = ('1', 'true', 'yes', 'y', 'on')


def _convert(name: str, value: Any, target: Any) -> Any:
    """Convert a raw string/YAML value to the field's declared type."""
    if value is None:
        return None
    try:
        if target is bool or target == 'bool':
            if isinstance(value, bool):
                return value
            return str(value).strip().lower() in _TRUE_VALUES
        if target is int or target == 'int':
            return int(value)
        if target is float or target == 'float':
            return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(
            f"Invalid value for '{name}': {value!r}",
            setting=ENV_VARS.get(name)
        )
    return str(value)


def cloud_instance_id_from_crn(crn: str) -> str:
    """
    Extract the workspace (service instance) id from a PowerVS CRN.

    crn:v1:bluemix:public:power-iaas:dal10:a/<account>:<instance-id>::
    """
    parts = crn.split(':')
    if len(parts) < 8 or not parts[7]:
        return ''
    return parts[7]


def load_config(config_file: str = None, environ: Mapping[str, str] = None,
                overrides: Dict[str, Any] = None) -> JobConfig:
    """
    Build and validate the job configuration.

    Args:
        config_file: Optional YAML file with field-name keys
        environ: Environment mapping (defaults to os.environ)
        overrides: Explicit values, e.g. from CLI flags (None values ignored)

    Returns:
        JobConfig: Validated, immutable configuration

    Raises:
        ConfigurationError: If a value is missing or malformed
    """
    environ = os.environ if environ is None else environ
    types = {f.name: f.type for f in fields(JobConfig)}
    values: Dict[str, Any] = {}

    if config_file:
        try:
            with open(config_file, 'r') as f:
                file_values = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Cannot read config file {config_file}: {e}")
        if not isinstance(file_values, dict):
            raise ConfigurationError(f"Config file {config_file} must contain a mapping")
        for name, value in file_values.items():
            if name not in types:
                raise ConfigurationError(f"Unknown setting '{name}' in {config_file}")
            values[name] = _convert(name, value, types[name])

    for name, env_name in ENV_VARS.items():
        if env_name in environ and environ[env_name] != '':
            values[name] = _convert(name, environ[env_name], types[name])

    for name, value in (overrides or {}).items():
        if value is None:
            continue
        if name not in types:
            raise ConfigurationError(f"Unknown setting '{name}'")
        values[name] = _convert(name, value, types[name])

    if not values.get('cloud_instance_id') and values.get('crn'):
        values['cloud_instance_id'] = cloud_instance_id_from_crn(values['crn'])

    config = JobConfig(**values)
    config.validate()
    return config
