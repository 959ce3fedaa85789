"""
USB Transport for P/ECE Communication
=====================================

This module provides the byte transport between the PC and the P/ECE
USB monitor. It handles:

- Locating the device by its fixed vendor/product identifier
- Detaching a kernel driver and claiming the transfer interface
- Bulk writes and reads with a fixed per-call timeout
- Releasing the interface when done

Transfer Model
--------------
The monitor exposes one vendor interface with a bulk OUT endpoint
(0x02) for commands and a bulk IN endpoint (0x82) for responses. The
protocol is strictly request/response: every response read must return
exactly the number of bytes the command asked for. A short read, a
short write, a timeout or any I/O error is fatal for the session;
nothing here retries.

Permissions
-----------
On Linux the device node needs to be accessible to the current user,
typically through a udev rule such as:

    SUBSYSTEM=="usb", ATTR{idVendor}=="0e19", ATTR{idProduct}=="1000", MODE="0666"
"""

import errno
import logging
from typing import Final, Optional

import usb.core
import usb.util

from piece_sdk.config import DEFAULT_TIMEOUT
from piece_sdk.errors import (
    DeviceNotFoundError,
    TimeoutError,
    TransportError,
)

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

PIECE_VENDOR_ID: Final[int] = 0x0E19
PIECE_PRODUCT_ID: Final[int] = 0x1000

# Bulk endpoints of the monitor interface
ENDPOINT_OUT: Final[int] = 0x02
ENDPOINT_IN: Final[int] = 0x82

DEFAULT_INTERFACE: Final[int] = 0


# =============================================================================
# Device Open/Close
# =============================================================================

def open_usb_device(
    vendor_id: int = PIECE_VENDOR_ID,
    product_id: int = PIECE_PRODUCT_ID,
    interface: int = DEFAULT_INTERFACE,
) -> usb.core.Device:
    """
    Find the P/ECE on the bus and claim its transfer interface.

    Args:
        vendor_id: USB vendor ID (default: P/ECE).
        product_id: USB product ID (default: P/ECE).
        interface: Interface number to claim (default: 0).

    Returns:
        The pyusb Device with the interface claimed.

    Raises:
        DeviceNotFoundError: If no matching device is attached, or it
            cannot be configured or claimed.

    Note:
        The caller is responsible for releasing the device with
        close_usb_device().
    """
    logger.debug("Looking for USB device %04x:%04x", vendor_id, product_id)
    device = usb.core.find(idVendor=vendor_id, idProduct=product_id)
    if device is None:
        raise DeviceNotFoundError(vendor_id, product_id)

    try:
        try:
            if device.is_kernel_driver_active(interface):
                device.detach_kernel_driver(interface)
                logger.debug("Detached kernel driver from interface %d", interface)
        except NotImplementedError:
            # Not supported on Windows/macOS backends
            pass

        try:
            device.get_active_configuration()
        except usb.core.USBError:
            device.set_configuration()

        usb.util.claim_interface(device, interface)

    except usb.core.USBError as e:
        usb.util.dispose_resources(device)
        if e.errno == errno.EACCES:
            raise DeviceNotFoundError(
                vendor_id, product_id,
                f"Permission denied accessing USB device {vendor_id:04x}:{product_id:04x}. "
                "Install a udev rule or run with sufficient privileges."
            ) from e
        elif e.errno == errno.EBUSY:
            raise DeviceNotFoundError(
                vendor_id, product_id,
                "P/ECE interface is already claimed (busy). "
                "Close any other program using the device."
            ) from e
        else:
            raise DeviceNotFoundError(
                vendor_id, product_id, f"Cannot claim P/ECE interface: {e}"
            ) from e

    logger.info(
        "Opened P/ECE on bus %s address %s",
        getattr(device, "bus", "?"), getattr(device, "address", "?"),
    )
    return device


def close_usb_device(device: Optional[usb.core.Device], interface: int = DEFAULT_INTERFACE) -> None:
    """
    Release the interface and free pyusb resources.

    Errors during close are logged and ignored.
    """
    if device is None:
        return

    try:
        usb.util.release_interface(device, interface)
    except usb.core.USBError as e:
        logger.warning("Error releasing USB interface: %s", e)
    finally:
        usb.util.dispose_resources(device)
        logger.debug("USB device closed")


# =============================================================================
# Transport
# =============================================================================

class UsbTransport:
    """
    Bidirectional request/response byte stream over bulk endpoints.

    Any object with the same write/read/close methods can stand in for
    this class, which is how the tests drive the session without
    hardware.

    Usage:
        transport = UsbTransport.open(timeout=1.0)
        try:
            transport.write(bytes([0x00, 0x20]))
            info = transport.read(32)
        finally:
            transport.close()
    """

    def __init__(
        self,
        device: usb.core.Device,
        timeout: float = DEFAULT_TIMEOUT,
        interface: int = DEFAULT_INTERFACE,
    ):
        self.device = device
        self.timeout = timeout
        self.interface = interface
        self._closed = False

    @classmethod
    def open(
        cls,
        timeout: float = DEFAULT_TIMEOUT,
        interface: int = DEFAULT_INTERFACE,
    ) -> "UsbTransport":
        """Open the P/ECE and wrap it in a transport."""
        device = open_usb_device(interface=interface)
        return cls(device, timeout=timeout, interface=interface)

    @property
    def timeout_ms(self) -> int:
        return int(self.timeout * 1000)

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, data: bytes) -> None:
        """
        Send one command frame.

        Raises:
            TimeoutError: If the device does not accept the frame in time.
            TransportError: On I/O errors or a short write.
        """
        self._check_open()
        try:
            written = self.device.write(ENDPOINT_OUT, data, timeout=self.timeout_ms)
        except usb.core.USBTimeoutError as e:
            raise TimeoutError(
                f"Timed out writing {len(data)} bytes to the device"
            ) from e
        except usb.core.USBError as e:
            raise TransportError(f"USB write failed: {e}") from e

        if written != len(data):
            raise TransportError(
                f"Short write: {written} of {len(data)} bytes sent"
            )
        logger.debug("TX %s", data.hex())

    def read(self, length: int) -> bytes:
        """
        Read exactly `length` bytes of response.

        Raises:
            TimeoutError: If no response arrives in time.
            TransportError: On I/O errors or a short read.
        """
        self._check_open()
        try:
            data = bytes(self.device.read(ENDPOINT_IN, length, timeout=self.timeout_ms))
        except usb.core.USBTimeoutError as e:
            raise TimeoutError(
                f"Timed out waiting for {length} bytes from the device"
            ) from e
        except usb.core.USBError as e:
            raise TransportError(f"USB read failed: {e}") from e

        if len(data) != length:
            raise TransportError(
                f"Short read: got {len(data)} of {length} bytes"
            )
        logger.debug("RX %d bytes", len(data))
        return data

    def close(self) -> None:
        """Release the device. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        close_usb_device(self.device, self.interface)

    def _check_open(self) -> None:
        if self._closed:
            raise TransportError("Transport is closed")
