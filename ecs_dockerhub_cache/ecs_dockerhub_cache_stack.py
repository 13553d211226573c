from aws_cdk import Stack, CfnOutput, Duration, RemovalPolicy, SecretValue
from aws_cdk import aws_ec2 as ec2
from aws_cdk import aws_ecr as ecr
from aws_cdk import aws_ecs as ecs
from aws_cdk import aws_elasticloadbalancingv2 as elbv2
from aws_cdk import aws_iam as iam
from aws_cdk import aws_logs as logs
from aws_cdk import aws_secretsmanager as secretsmanager
from constructs import Construct

from ecs_dockerhub_cache.validate_env import DockerHubCredentials

# Secrets used by an ECR pull-through cache rule must carry this name prefix.
# https://docs.aws.amazon.com/AmazonECR/latest/userguide/pull-through-cache-creating-rule.html#cache-rule-prereq
ECR_PULL_THROUGH_CACHE_PREFIX = "ecr-pullthroughcache/"

DOCKERHUB_REPOSITORY_PREFIX = "dockerhub"
NGINX_CONTAINER_NAME = "nginx"
NGINX_PORT = 80


class EcsDockerhubCacheStack(Stack):

    def __init__(self, scope: Construct, construct_id: str, *, credentials: DockerHubCredentials, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        #################################################
        ############### SECRETS MANAGER #################
        #################################################

        self.secret = secretsmanager.Secret(
            self, "DhCacheRuleSecret",
            secret_name=f"{ECR_PULL_THROUGH_CACHE_PREFIX}dockerhub",
            secret_string_value=SecretValue.unsafe_plain_text(credentials.secret_string()),
            removal_policy=RemovalPolicy.DESTROY,
        )

        #################################################
        ###################### VPC ######################
        #################################################

        self.vpc = ec2.Vpc.from_lookup(self, "DefaultVpc", is_default=True)

        #################################################
        ###################### ALB ######################
        #################################################

        self.load_balancer = elbv2.ApplicationLoadBalancer(
            self, "NginxAlb",
            vpc=self.vpc,
            internet_facing=True,
        )

        self.listener = self.load_balancer.add_listener(
            "NginxAlbHttpListener",
            port=NGINX_PORT,
            protocol=elbv2.ApplicationProtocol.HTTP,
        )

        #################################################
        ###################### IAM  #####################
        #################################################

        # Pulls images through the cache and writes container logs
        self.execution_role = iam.Role(
            self, "EcsTaskExecutionRole",
            assumed_by=iam.ServicePrincipal("ecs-tasks.amazonaws.com"),
            managed_policies=[
                iam.ManagedPolicy.from_aws_managed_policy_name("service-role/AmazonECSTaskExecutionRolePolicy"),
            ]
        )

        #################################################
        ###################### ECR ######################
        #################################################

        self.cache_rule = ecr.CfnPullThroughCacheRule(
            self, "DhCacheRule",
            ecr_repository_prefix=DOCKERHUB_REPOSITORY_PREFIX,
            upstream_registry="docker-hub",
            upstream_registry_url="registry-1.docker.io",
            credential_arn=self.secret.secret_arn,
        )

        self.registry_policy = ecr.CfnRegistryPolicy(
            self, "DhCacheRegistryPolicy",
            policy_text={
                "Version": "2012-10-17",
                "Statement": [
                    {
                        "Sid": "AllowDockerhubCache",
                        "Effect": "Allow",
                        "Principal": {"AWS": self.execution_role.role_arn},
                        "Action": ["ecr:CreateRepository", "ecr:BatchImportUpstreamImage"],
                        "Resource": f"arn:aws:ecr:{self.region}:{self.account}:repository/{self.cache_rule.ecr_repository_prefix}/*",
                    }
                ],
            },
        )

        # Populated by the first pull through the cache, never pushed to
        self.repository = ecr.Repository(
            self, "EcrNginxRepo",
            repository_name=f"{self.cache_rule.ecr_repository_prefix}/library/nginx",
            removal_policy=RemovalPolicy.DESTROY,
            empty_on_delete=True,
        )

        #################################################
        ###################### ECS ######################
        #################################################

        self.cluster = ecs.Cluster(self, "EcsCluster", vpc=self.vpc)

        self.task_definition = ecs.TaskDefinition(
            self, "EcsTaskDefinition",
            compatibility=ecs.Compatibility.FARGATE,
            cpu="512",
            memory_mib="1024",
            execution_role=self.execution_role,
        )

        self.task_definition.add_container(
            NGINX_CONTAINER_NAME,
            image=ecs.ContainerImage.from_ecr_repository(self.repository),
            port_mappings=[
                ecs.PortMapping(
                    container_port=NGINX_PORT,
                    host_port=NGINX_PORT,
                    protocol=ecs.Protocol.TCP,
                    name="http",
                )
            ],
            health_check=ecs.HealthCheck(
                command=["CMD-SHELL", "curl -f http://localhost/ || exit 1"],
                start_period=Duration.seconds(10),
            ),
            logging=ecs.LogDriver.aws_logs(
                stream_prefix="/ecs/nginx",
                log_retention=logs.RetentionDays.ONE_WEEK,
            ),
        )

        self.service = ecs.FargateService(
            self, "NginxService",
            cluster=self.cluster,
            task_definition=self.task_definition,
            desired_count=2,
            assign_public_ip=True,
        )

        # Image pulls through the cache fail until the registry policy is in
        # place, and CloudFormation cannot infer that from the references above.
        self.service.node.add_dependency(self.registry_policy)

        #################################################
        ############### ALB TARGET GROUP ################
        #################################################

        http_target = self.service.load_balancer_target(
            container_name=NGINX_CONTAINER_NAME,
            container_port=NGINX_PORT,
            protocol=ecs.Protocol.TCP,
        )

        self.target_group = self.listener.add_targets(
            "HttpTarget",
            port=NGINX_PORT,
            protocol=elbv2.ApplicationProtocol.HTTP,
            targets=[http_target],
            health_check=elbv2.HealthCheck(
                path="/",
                port=str(NGINX_PORT),
                protocol=elbv2.Protocol.HTTP,
                healthy_http_codes="200",
            ),
        )

        # Security Group Rules
        self.service.connections.allow_from(
            self.load_balancer,
            ec2.Port.tcp(NGINX_PORT),
            "Allow ALB to access Nginx HTTP endpoint",
        )

        #################################################
        ################## CDK OUTPUTS ##################
        #################################################

        CfnOutput(self, "LoadBalancerDns", value=self.load_balancer.load_balancer_dns_name)
        CfnOutput(self, "NginxRepositoryUri", value=self.repository.repository_uri)
