"""
Shared constants for CloudLens.
"""

# Regions CloudLens is allowed to query (BE-ADAPT-1: Regional Whitelist)
AWS_SUPPORTED_REGIONS = [
    "us-east-1", "us-east-2", "us-west-1", "us-west-2",
    "ca-central-1", "sa-east-1",
    "eu-west-1", "eu-west-2", "eu-west-3", "eu-central-1", "eu-north-1",
    "ap-northeast-1", "ap-northeast-2", "ap-northeast-3",
    "ap-southeast-1", "ap-southeast-2", "ap-south-1",
]

# Display value for any field the provider did not return
NOT_AVAILABLE = "N/A"

DEFAULT_CURRENCY = "USD"
