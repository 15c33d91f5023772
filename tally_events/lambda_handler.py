"""AWS Lambda handler for the Tally events service.

Wraps the FastAPI application with the Mangum adapter so it can run behind
API Gateway or a Lambda function URL.
"""

from mangum import Mangum

from tally_events.dependencies import init_dependencies
from tally_events.main import app

# Startup runs once per cold start here; Mangum would run the lifespan on every invocation
init_dependencies()
handler = Mangum(app, lifespan="off")


def lambda_handler(event: dict, context: object) -> dict:
    """
    AWS Lambda function handler.

    Args:
        event: API Gateway / function URL event
        context: Lambda context object

    Returns:
        API Gateway response dict with statusCode, headers, and body
    """
    return handler(event, context)
