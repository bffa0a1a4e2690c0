from setuptools import setup, find_packages

setup(
    name='supportctl',
    version='0.1.0',
    packages=find_packages(exclude=['supportctl.tests']),
    include_package_data=True,
    install_requires=[
        'typer[all]',
        'requests',
        'pydantic>=2',
        'python-dotenv'
    ],
    extras_require={
        'test': [
            'pytest'
        ]
    },
    entry_points={
        'console_scripts': [
            'supportctl=supportctl.cli:run'
        ]
    },
    author='Your Name',
    description='CLI for managing limited support reasons on OpenShift Cluster Manager clusters',
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: OS Independent',
    ],
    python_requires='>=3.8',
)
