from setuptools import setup

setup(
    name='infraresolve',
    version='0.1',
    py_modules=['infraresolve'],
    packages=['resolver'],
    install_requires=[
        'Click',
        'python-hcl2',
        'PyYAML',
        'graphviz',
        'boto3',
        'ipaddr',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points='''
        [console_scripts]
        infraresolve=infraresolve:cli
    ''',
)
