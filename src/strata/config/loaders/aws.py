"""AWS configuration loaders.

Secrets are read from AWS Secrets Manager and parameters from the SSM Parameter Store,
both through :mod:`boto3`. The remote path of each loader depends on the environment
tier: a base path is prefixed by the segment the tier maps to, for instance
``/dev/my-app`` in the development tier.

Whole configuration files can also be read from an S3 object.

The boto3 calls are blocking, they are run in a worker thread so that loading can be
awaited (and abandoned) like any other coroutine.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import typing as t
from collections import abc

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from strata.config.types import (
    LOCAL,
    ConfigParsingError,
    MissingEnvironmentMappingError,
    RemoteSourceError,
    SourceType,
)

from .core import ConfigLoader
from .envfile import parse_env

log = logging.getLogger(__name__)

DEFAULT_ENVIRONMENT_MAPPING: dict[str, str] = {
    "development": "dev",
    "test": "test",
    "production": "production",
}
"""Path segment used for each environment tier."""

DEFAULT_REGION = "us-east-1"


def _error_code(err: ClientError) -> str:
    return err.response.get("Error", {}).get("Code", "")


class BotoLoader(ConfigLoader):
    """Common logic for loaders backed by an AWS service.

    Parameters
    ----------
    region
        AWS region. Defaults to the ``AWS_REGION`` environment variable.
    client
        Pre-built boto3 client. If None, one is created on first use.
    """

    remote = True
    service_name: str = ""
    """Name of the boto3 service."""
    service_label: str = ""
    """Human readable service name for error messages."""

    def __init__(
        self, region: str | None = None, client: t.Any = None, **kwargs: t.Any
    ) -> None:
        kwargs.setdefault("log", log)
        super().__init__(**kwargs)
        self.region = region or os.environ.get("AWS_REGION")
        self._client = client

    @property
    def client(self) -> t.Any:
        """Boto3 client for :attr:`service_name`."""
        if self._client is None:
            self._client = boto3.client(
                self.service_name, region_name=self.region or DEFAULT_REGION
            )
        return self._client

    def location(self) -> str:
        """Return the remote location read by this loader, for messages."""
        raise NotImplementedError()

    def _credentials_resolvable(self) -> bool:
        session = boto3.Session(region_name=self.region)
        return session.get_credentials() is not None

    async def is_available(self) -> bool:
        """Return False if no AWS credentials can be found."""
        if self._client is not None:
            return True
        try:
            return await asyncio.to_thread(self._credentials_resolvable)
        except BotoCoreError as err:
            self.log.debug("Cannot resolve AWS credentials: %s", err)
            return False

    def _service_error(self, operation: str, err: Exception) -> RemoteSourceError:
        path = self.location()
        if isinstance(err, ClientError):
            code = _error_code(err)
            if code in ("AccessDeniedException", "AccessDenied"):
                msg = (
                    f"Access denied to {self.service_label} path '{path}'. "
                    "Check IAM permissions."
                )
            elif code in ("InvalidRequestException", "ValidationException"):
                msg = f"Invalid request to {self.service_label} for '{path}': {err}"
            else:
                msg = f"{self.service_label} error for '{path}' ({code}): {err}"
        else:
            msg = f"{self.service_label} error for '{path}': {err}"
        return RemoteSourceError(msg, service=self.service_label, operation=operation)


class AwsLoader(BotoLoader):
    """Loader reading below a path that depends on the environment tier.

    Parameters
    ----------
    base_path
        Path appended to the tier segment to form the remote path.
    tier
        Active environment tier.
    environment_mapping
        Mapping of tiers to path segments. Defaults to
        :data:`DEFAULT_ENVIRONMENT_MAPPING`.
    kwargs
        Passed to :class:`BotoLoader`.
    """

    def __init__(
        self,
        base_path: str,
        tier: str,
        environment_mapping: abc.Mapping[str, str] | None = None,
        **kwargs: t.Any,
    ) -> None:
        super().__init__(**kwargs)
        if environment_mapping is None:
            environment_mapping = DEFAULT_ENVIRONMENT_MAPPING
        self.base_path = base_path
        self.tier = tier
        self.environment_mapping = dict(environment_mapping)

    @property
    def name(self) -> str:
        try:
            path = self.resolve_path()
        except MissingEnvironmentMappingError:
            path = self.base_path
        return f"{self.__class__.__name__}({path})"

    def resolve_path(self) -> str:
        """Return the remote path for the active tier.

        Raises
        ------
        MissingEnvironmentMappingError
            If the tier has no path segment.
        """
        try:
            segment = self.environment_mapping[self.tier]
        except KeyError as err:
            raise MissingEnvironmentMappingError(
                self.tier, self.environment_mapping.keys()
            ) from err
        return f"/{segment}{self.base_path}"

    def location(self) -> str:
        return self.resolve_path()

    async def is_available(self) -> bool:
        """Return False in the local tier, or if no AWS credentials can be found."""
        if self.tier == LOCAL:
            return False
        return await super().is_available()


class SecretsManagerLoader(AwsLoader):
    """Load a JSON secret from AWS Secrets Manager.

    The secret ``/{segment}{secret_name}`` is fetched. A JSON object is returned as
    is, any other content is returned under the ``SECRET_VALUE`` key. A missing
    secret yields an empty configuration.
    """

    source_type = SourceType.SECRETS_STORE
    service_name = "secretsmanager"
    service_label = "Secrets Manager"

    def __init__(
        self, secret_name: str = "/strata-config", *args: t.Any, **kwargs: t.Any
    ) -> None:
        super().__init__(secret_name, *args, **kwargs)

    @property
    def secret_name(self) -> str:
        return self.base_path

    def _fetch(self, secret_id: str) -> str | None:
        response = self.client.get_secret_value(SecretId=secret_id)
        return response.get("SecretString")

    async def load(self) -> dict[str, t.Any]:
        secret_id = self.resolve_path()
        self.log.debug("Fetching secret %s", secret_id)
        try:
            secret = await asyncio.to_thread(self._fetch, secret_id)
        except ClientError as err:
            if _error_code(err) == "ResourceNotFoundException":
                self.log.debug("Secret %s not found.", secret_id)
                return {}
            raise self._service_error("GetSecretValue", err) from err
        except BotoCoreError as err:
            raise self._service_error("GetSecretValue", err) from err

        if not secret:
            return {}
        return self.parse_secret(secret)

    @staticmethod
    def parse_secret(secret: str) -> dict[str, t.Any]:
        """Return configuration from the secret string."""
        try:
            parsed = json.loads(secret)
        except ValueError:
            return {"SECRET_VALUE": secret}
        if isinstance(parsed, dict):
            return parsed
        return {"SECRET_VALUE": parsed}


class ParameterStoreLoader(AwsLoader):
    """Load all parameters under a path of the SSM Parameter Store.

    Parameters are fetched recursively below ``/{segment}{parameter_path}`` and
    decrypted. Each parameter name is turned into a flat upper-case key by removing
    the path and all separators: ``/dev/app/database/host`` gives ``DATABASEHOST``.

    Parameters
    ----------
    with_decryption
        Decrypt SecureString parameters.
    """

    source_type = SourceType.PARAMETER_STORE
    service_name = "ssm"
    service_label = "Parameter Store"

    def __init__(
        self,
        parameter_path: str = "/strata-config",
        *args: t.Any,
        with_decryption: bool = True,
        **kwargs: t.Any,
    ) -> None:
        super().__init__(parameter_path, *args, **kwargs)
        self.with_decryption = with_decryption

    @property
    def parameter_path(self) -> str:
        return self.base_path

    async def is_available(self) -> bool:
        """Same as the base, but a region is required as well."""
        if self._client is None and not self.region:
            return False
        return await super().is_available()

    def _fetch_page(self, path: str, token: str | None) -> dict[str, t.Any]:
        kwargs: dict[str, t.Any] = dict(
            Path=path, Recursive=True, WithDecryption=self.with_decryption
        )
        if token:
            kwargs["NextToken"] = token
        return self.client.get_parameters_by_path(**kwargs)

    async def load(self) -> dict[str, t.Any]:
        path = self.resolve_path()
        self.log.debug("Fetching parameters under %s", path)

        config: dict[str, t.Any] = {}
        token: str | None = None
        while True:
            try:
                page = await asyncio.to_thread(self._fetch_page, path, token)
            except ClientError as err:
                if _error_code(err) == "ParameterNotFound":
                    self.log.debug("No parameters under %s.", path)
                    return {}
                raise self._service_error("GetParametersByPath", err) from err
            except BotoCoreError as err:
                raise self._service_error("GetParametersByPath", err) from err

            for parameter in page.get("Parameters", []):
                key = self.key_from_name(parameter.get("Name", ""), path)
                if key and "Value" in parameter:
                    config[key] = parameter["Value"]

            token = page.get("NextToken")
            if not token:
                break

        return config

    @staticmethod
    def key_from_name(name: str, path: str) -> str:
        """Transform a parameter name into a flat key."""
        return name.replace(path, "", 1).replace("/", "").upper()


class S3Loader(BotoLoader):
    """Load a configuration file stored in an S3 bucket.

    The object holds either a JSON object or ``.env`` lines. A missing object or
    bucket yields an empty configuration.

    Parameters
    ----------
    bucket
        Name of the bucket.
    key
        Key of the object.
    format
        ``json``, ``env``, or ``auto`` to treat content starting with ``{`` as JSON
        and anything else as ``.env``.
    """

    source_type = SourceType.OBJECT_STORE
    service_name = "s3"
    service_label = "S3"

    formats = ("auto", "json", "env")

    def __init__(
        self, bucket: str, key: str, format: str = "auto", **kwargs: t.Any
    ) -> None:
        if format not in self.formats:
            raise ValueError(
                f"Unsupported S3 object format '{format}', "
                f"expected one of {', '.join(self.formats)}."
            )
        super().__init__(**kwargs)
        self.bucket = bucket
        self.key = key
        self.format = format

    @property
    def name(self) -> str:
        return f"{self.__class__.__name__}({self.location()})"

    def location(self) -> str:
        return f"s3://{self.bucket}/{self.key}"

    def _fetch(self) -> str:
        response = self.client.get_object(Bucket=self.bucket, Key=self.key)
        body = response.get("Body")
        if body is None:
            return ""
        return body.read().decode("utf-8")

    async def load(self) -> dict[str, t.Any]:
        self.log.debug("Fetching object %s", self.location())
        try:
            content = await asyncio.to_thread(self._fetch)
        except ClientError as err:
            if _error_code(err) in ("NoSuchKey", "NoSuchBucket"):
                self.log.debug("Object %s not found.", self.location())
                return {}
            raise self._service_error("GetObject", err) from err
        except BotoCoreError as err:
            raise self._service_error("GetObject", err) from err

        if not content.strip():
            return {}
        return self.parse_content(content)

    def detect_format(self, content: str) -> str:
        """Return the format of `content`, as set or guessed."""
        if self.format != "auto":
            return self.format
        return "json" if content.lstrip().startswith("{") else "env"

    def parse_content(self, content: str) -> dict[str, t.Any]:
        """Return configuration from the object content.

        Raises
        ------
        ConfigParsingError
            If JSON content cannot be decoded.
        """
        if self.detect_format(content) == "env":
            return parse_env(content)

        try:
            parsed = json.loads(content)
        except ValueError as err:
            raise ConfigParsingError(
                f"Failed to parse JSON from {self.location()}: {err}"
            ) from err
        if isinstance(parsed, dict):
            return parsed
        return {"CONFIG_VALUE": parsed}
