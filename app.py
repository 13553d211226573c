#!/usr/bin/env python3
import aws_cdk as cdk

from ecs_dockerhub_cache.deployment_env import resolve_environment
from ecs_dockerhub_cache.ecs_dockerhub_cache_stack import EcsDockerhubCacheStack
from ecs_dockerhub_cache.validate_env import load_dockerhub_credentials

# Fails before any construct exists if the Docker Hub credentials are missing
credentials = load_dockerhub_credentials()
env = resolve_environment()

print(f"Synthesizing EcsDockerhubCacheStack for account {env.account} in {env.region}")

app = cdk.App()
EcsDockerhubCacheStack(
    app, "EcsDockerhubCacheStack",
    credentials=credentials,
    env=env,
)

app.synth()
