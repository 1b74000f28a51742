import json
import os

PROJECT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def load_stage_environment(stage: str = 'test') -> dict:
    with open(os.path.join(PROJECT_DIR, '.chalice', 'config.json')) as config_file:
        return json.load(config_file)['stages'][stage]['environment_variables']


# app.py reads the stream ARN at import time
for env_key, env_value in load_stage_environment().items():
    os.environ.setdefault(env_key, env_value)
os.environ.setdefault('AWS_DEFAULT_REGION', os.environ['DEFAULT_REGION'])
for credential_key in ('AWS_ACCESS_KEY_ID', 'AWS_SECRET_ACCESS_KEY', 'AWS_SECURITY_TOKEN', 'AWS_SESSION_TOKEN'):
    os.environ.setdefault(credential_key, 'testing')

from test.utils.fixtures import ddb_table, fake_ses, fake_s3, client, seed  # noqa: E402,F401
