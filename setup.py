from setuptools import setup, find_packages

setup(
    name='imap-manager',
    version='1.0.0',
    packages=find_packages(where='src'),
    package_dir={'': 'src'},
    install_requires=[
        'pyyaml',
        'python-dotenv',
        'pydantic>=2',
        'click',
        'imapclient',
    ],
    extras_require={
        'dev': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'imap-manager=imap_manager.cli:main',
        ],
    },
)
