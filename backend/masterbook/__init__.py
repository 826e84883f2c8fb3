"""MasterBook backend: scheduling and availability engine for the master/student marketplace."""

__version__ = "1.0.0"
