"""Setup script for codecritic-gateway."""

from setuptools import setup, find_packages

setup(
    name="codecritic-gateway",
    version="0.1.0",
    description="HTTP gateway that streams and records AI code reviews",
    python_requires=">=3.9",
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    install_requires=[
        "fastapi>=0.110,<0.137",
        "uvicorn>=0.27",
        "anyio>=4.0",
        "pydantic>=2.5",
        "pydantic-settings>=2.1",
        "structlog>=24.1",
        "opentelemetry-api>=1.22",
        "opentelemetry-sdk>=1.22",
        "google-generativeai>=0.5",
        "openai>=1.12",
        "click>=8.1",
        "rich>=13.7",
        "httpx>=0.26",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
            "hypothesis>=6.98",
        ],
    },
    entry_points={
        'console_scripts': [
            'code-critic=api.cli:main',
        ],
    },
)
