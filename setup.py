from setuptools import setup, find_namespace_packages

setup(
    name="aggchain",
    version="0.3.0",
    description="Chainable, awaitable MongoDB aggregation builder with cursor draining and replay-based counting",
    python_requires=">=3.11",
    package_dir={"": "src"},
    packages=find_namespace_packages(where="src", include=["aggchain*"]),
    install_requires=[
        "pymongo>=4.10",
        "pydantic>=2",
    ],
    extras_require={
        "test": [
            "pytest",
            "mongomock",
        ],
    },
)
