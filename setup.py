from setuptools import setup, find_packages

setup(
    name="bastion",
    version="0.1.0",
    packages=find_packages(include=["bastion", "bastion.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.110",
        "starlette>=0.36",
        "pydantic>=2.5",
        "pydantic-settings>=2.2",
        "uvicorn>=0.27",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
            "httpx>=0.27",
        ],
    },
    entry_points={
        "console_scripts": [
            "bastion=bastion.app.main:run",
        ],
    },
)
