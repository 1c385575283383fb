#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Exceptions defined by this package"""

from __future__ import annotations

from typing import Optional

class SmartPlugError(Exception):
  """Base class for all error exceptions defined by this package."""
  pass

class SmartPlugConnectionError(SmartPlugError, ConnectionError):
  """The local socket could not be created or bound."""
  pass

class SmartPlugTransportError(SmartPlugError):
  """A send or receive failed for a reason other than deadline expiry."""
  pass

class SmartPlugTimeoutError(SmartPlugError, TimeoutError):
  """The deadline elapsed before a reply to a single exchange arrived."""
  pass

class MalformedReplyError(SmartPlugError):
  """A decoded reply could not be interpreted as the expected structured data."""
  pass

class SmartPlugDeviceError(SmartPlugError):
  """The device answered a command with a non-zero err_code."""
  err_code: int
  err_msg: Optional[str]

  def __init__(self, err_code: int, err_msg: Optional[str]=None):
    msg = f"Device returned err_code {err_code}"
    if err_msg:
      msg += f": {err_msg}"
    super().__init__(msg)
    self.err_code = err_code
    self.err_msg = err_msg
