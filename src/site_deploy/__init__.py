"""Static site deployment to S3, CloudFront, ACM and Route53 with incremental state."""

__version__ = "0.1.0"
