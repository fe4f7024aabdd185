import logging
import os
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from makesnapshot.exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = 'makeSnapshot'
DEFAULT_CONFIG_FILE = f'{DEFAULT_CONFIG_NAME}.yaml'

# Keys are matched case-insensitively; these restore the documented spelling in messages
KEY_NAMES = {
    'baseurl': 'baseURL',
    'username': 'userName',
    'verifyssl': 'verifySSL',
    'maxwait': 'maxWait',
}

SAMPLE_CONFIG = {
    'baseURL': 'https://your.base.url',
    'tenant': 'your tenant name',
    'domain': 'your domain name',
    'userName': 'your username without domain',
    'password': 'your password',
}


class VRAConfig(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, coerce_numbers_to_str=True)

    base_url: str = Field(alias='baseurl')
    tenant: str
    domain: str
    username: str
    password: str = Field(repr=False)
    verify_ssl: bool = Field(default=True, alias='verifyssl')
    timeout: int = Field(default=30, gt=0)
    max_wait: Optional[int] = Field(default=None, gt=0, alias='maxwait')

    @field_validator('base_url', 'tenant', 'domain', 'username', 'password')
    @classmethod
    def not_blank(cls, value):
        if not value.strip():
            raise ValueError('zero-length string')
        return value


class RunOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    machine_name: str = Field(min_length=1)
    dry_run: bool = False
    keep_existing: bool = False
    ignore_case: bool = False
    trace: bool = False
    max_wait: Optional[int] = Field(default=None, gt=0)


def _describe(error):
    loc = error['loc'][0] if error['loc'] else 'config'
    return f"{KEY_NAMES.get(loc, loc)}: {error['msg']}"


def load_config(path=None, domain=None):
    """
    Load and validate the YAML configuration file.

    :param path: Config file path, defaults to makeSnapshot.yaml in the working directory
    :param domain: Optional login domain overriding the file's value
    :return: VRAConfig
    """
    path = path or DEFAULT_CONFIG_FILE
    if not os.path.isfile(path):
        raise ConfigError(f'Unable to find configfile "{path}"')

    try:
        with open(path, 'r') as f:
            raw_config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}")
    except OSError as e:
        raise ConfigError(f"Unable to read configfile \"{path}\": {e}")
    if not isinstance(raw_config, dict):
        raise ConfigError(f"Invalid config {path}: expected a mapping of keys to values")
    logger.info(f"Using config file: {path}")

    values = {str(key).lower(): value for key, value in raw_config.items()}
    if domain:
        values['domain'] = domain

    try:
        return VRAConfig.model_validate(values)
    except ValidationError as e:
        problems = '; '.join(_describe(error) for error in e.errors())
        raise ConfigError(f"Invalid config {path}: {problems}")


def write_sample_config(path=DEFAULT_CONFIG_FILE):
    """
    Write a sample configuration file, never overwriting an existing one.

    :param path: File to create
    :return: The created path
    """
    if os.path.exists(path):
        raise ConfigError(f'Unable to create "{path}", file or directory already exists')
    try:
        with open(path, 'w') as f:
            yaml.safe_dump(SAMPLE_CONFIG, f, explicit_start=True, explicit_end=True, sort_keys=False)
    except OSError as e:
        raise ConfigError(f'Unable to create "{path}": {e}')
    logger.info(f"Created config file {path}")
    return path
