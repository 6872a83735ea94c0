"""AWS Lambda handler using Mangum for FastAPI."""

from mangum import Mangum

from realty_news.api.server import app

handler = Mangum(app, lifespan="off")
