#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Exceptions defined by this package"""

class HueSsdpError(Exception):
  """Base class for all error exceptions defined by this package."""
  pass

class TargetParseError(HueSsdpError):
  """The "<host>:<port>" target of the real bridge could not be parsed."""
  pass

class DescriptionFetchError(HueSsdpError):
  """description.xml could not be retrieved from the bridge (transport failure or non-200 status)."""
  pass

class DescriptionParseError(HueSsdpError):
  """description.xml was retrieved but is not XML, or has no usable root/device/UDN."""
  pass
