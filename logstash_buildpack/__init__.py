# -*- coding: utf-8 -*-
"""
Cloudfoundry buildpack to stage Logstash applications
"""
__version__ = "0.1.0"
