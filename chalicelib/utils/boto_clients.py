import os
import boto3

from botocore.config import Config

main_boto_region = os.environ.get('MAIN_BOTO_REGION', 'ap-southeast-1')
aws_config_ddb = Config(retries={'max_attempts': 30}, region_name=os.environ.get('AWS_REGION', main_boto_region))

# Cognito Client.
cognito_client = boto3.client('cognito-idp', region_name=main_boto_region)

# Simple Email Service Client.
ses_client = boto3.client('ses', config=Config(retries={'max_attempts': 30},
                                               region_name=os.environ.get('SES_REGION', main_boto_region)))

# S3 Client.
# Clients provide a low-level interface to AWS services whose methods map close to 1:1 with service APIs.
s3_client = boto3.client('s3', region_name=main_boto_region)
