import os
import tempfile
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(Path(__file__).parent.parent.absolute(), '.env'))

ROSA_BINARY = os.getenv('ROSAPILOT_ROSA_BINARY', 'rosa')
TERRAFORM_BINARY = os.getenv('ROSAPILOT_TERRAFORM_BINARY', 'terraform')

DEFAULT_POLL_INTERVAL = float(os.getenv('ROSAPILOT_POLL_INTERVAL', '30'))
NIGHTLY_VERSION_WAIT = float(os.getenv('ROSAPILOT_NIGHTLY_VERSION_WAIT', '300'))

BASE_WORKING_DIR = Path(os.getenv('ROSAPILOT_WORKING_DIR', Path(tempfile.gettempdir(), 'rosapilot')))
DEFAULT_ARTIFACT_DIR = Path(os.getenv('ROSAPILOT_ARTIFACT_DIR', tempfile.gettempdir()))

# rosa/ocm cli keeps its login state here, one file per process user
OCM_CONFIG_PATH = Path(os.getenv('ROSAPILOT_OCM_CONFIG', Path(tempfile.gettempdir(), 'ocm.json')))

SSO_TOKEN_URL = os.getenv(
    'ROSAPILOT_SSO_TOKEN_URL',
    'https://sso.redhat.com/auth/realms/redhat-external/protocol/openid-connect/token',
)
FEDRAMP_TOKEN_URL = os.getenv(
    'ROSAPILOT_FEDRAMP_TOKEN_URL',
    'https://sso.int.openshiftusgov.com/realms/redhat-external/protocol/openid-connect/token',
)
