"""raw2ami - publish a raw disk image to AWS as a bootable AMI."""

__version__ = "0.1.0"
