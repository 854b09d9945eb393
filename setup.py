import setuptools

with open("README.md", "r", encoding="utf-8") as f:
    long_description = f.read()

with open("requirements.txt", "r", encoding="utf-8") as f:
    requirements = f.readlines()

setuptools.setup(
    name="testnet_launcher",
    version="0.1.0",
    description="Consensus layer client test network launcher",
    long_description=long_description,
    long_description_content_type="text/markdown",
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    install_requires=requirements,
    packages=[
        "testnet_launcher",
        "testnet_launcher.clients",
    ],
    package_data={
        "testnet_launcher": [
            "templates/genesis-config.yaml.tmpl",
            "templates/mnemonics.yaml.tmpl",
        ],
    },
    entry_points={
        "console_scripts": [
            "testnet-launcher=testnet_launcher.__main__:main",
        ],
    },
    python_requires=">=3.9",
)
