from setuptools import find_packages, setup

setup(
    name="ado-provisioner",
    version="0.1.0",
    package_dir={"": "src"},
    packages=find_packages("src"),
    install_requires=[
        "pydantic>=2",
        "pyyaml",
        "requests",
        "tenacity",
        "azure-core",
        "azure-identity",
        "rich",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "adoprov=ado_provisioner.cli:main",  # Shorter CLI command
            "ado-provisioner=ado_provisioner.cli:main",  # Full name
        ],
    },
    description="Provision Azure DevOps repositories, pipelines, work items and pull requests",
    python_requires=">=3.10",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Build Tools",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
    ],
)
