"""AMI registration from an imported snapshot."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from botocore.exceptions import BotoCoreError, ClientError

from raw2ami.config import ImageOptions
from raw2ami.errors import ImageRegistrationError, RemoteInconsistencyError
from raw2ami.utils.deadline import Deadline
from raw2ami.utils.logging import get_logger

logger = get_logger(__name__)

ROOT_DEVICE_NAME = "/dev/sda1"


@dataclass(frozen=True)
class RegistrationRequest:
    name: str
    snapshot_id: str
    options: ImageOptions
    description: Optional[str] = None

    def to_api_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {
            "Name": self.name,
            "Architecture": self.options.architecture,
            "BlockDeviceMappings": [
                {
                    "DeviceName": ROOT_DEVICE_NAME,
                    "Ebs": {
                        "DeleteOnTermination": True,
                        "SnapshotId": self.snapshot_id,
                        "VolumeType": "standard",
                    },
                },
            ],
            "Description": self.description or f"raw2ami: {self.name} image",
            "RootDeviceName": ROOT_DEVICE_NAME,
            "VirtualizationType": "hvm",
            "EnaSupport": self.options.ena,
        }
        if self.options.sriov:
            params["SriovNetSupport"] = self.options.sriov
        if self.options.uefi:
            params["BootMode"] = self.options.boot_mode
            if self.options.tpm:
                params["TpmSupport"] = "v2.0"
        return params


class ImageRegistrar:
    """Registers the machine image. Not idempotent, so never retried."""

    def __init__(self, client):
        self.client = client

    def register(
        self,
        name: str,
        snapshot_id: str,
        options: ImageOptions,
        deadline: Optional[Deadline] = None,
    ) -> str:
        request = RegistrationRequest(name=name, snapshot_id=snapshot_id, options=options)
        params = request.to_api_params()

        if deadline is not None:
            deadline.check("register_image")
        logger.debug(f"RegisterImage: {params}")
        try:
            resp = self.client.register_image(**params)
        except (BotoCoreError, ClientError) as e:
            raise ImageRegistrationError(
                f"Error registering the image: {name}; {e}",
                context={"snapshot_id": snapshot_id},
            ) from e

        image_id = resp.get("ImageId")
        if not image_id:
            raise RemoteInconsistencyError(f"RegisterImage returned no image id for {name}")
        logger.info(f"Created AMI: {image_id}")
        return image_id
