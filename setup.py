from setuptools import setup, find_packages

setup(
    name="marketgate",
    version="0.1.0",
    packages=find_packages(include=["marketgate", "marketgate.*"]),
    python_requires=">=3.11",
    entry_points={"console_scripts": ["marketgate=marketgate.__main__:main"]},
    install_requires=[
        "fastapi>=0.110",
        "uvicorn[standard]>=0.27",
        "httpx>=0.27",
        "pydantic>=2.6",
        "pydantic-settings>=2.3",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
            "respx>=0.21",
        ],
    },
)
