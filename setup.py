from setuptools import setup, find_packages

setup(
    name='weaverctl',
    version='0.1.0',
    packages=find_packages(exclude=['weaverctl.tests', 'weaverctl.tests.*']),
    include_package_data=True,
    package_data={
        'weaverctl.modules.software': ['artifact.yaml', 'templates/*.j2'],
    },
    install_requires=[
        'typer',
        'requests',
        'pyyaml',
        'jinja2',
        'pydantic>=2',
        'python-dotenv',
        'semver>=3',
        'tomlkit>=0.11',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'weaverctl=weaverctl.cli:app'
        ]
    },
    author='Your Name',
    description='A CLI for downloading, verifying, installing and configuring node software in a sandbox',
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: OS Independent',
    ],
    python_requires='>=3.8',
)
