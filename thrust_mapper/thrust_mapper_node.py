import os
import sys

import rclpy
from rclpy.duration import Duration
from rclpy.logging import get_logger
from rclpy.node import Node
from rclpy.time import Time
from ament_index_python.packages import PackageNotFoundError, get_package_share_directory
from diagnostic_msgs.msg import DiagnosticStatus, KeyValue
from geometry_msgs.msg import Accel
from sensor_msgs.msg import JointState
from tf2_ros import Buffer, TransformException, TransformListener

from thrust_mapper.config import load_config, resolve_toggle
from thrust_mapper.geometry import GeometryLookupError, lookup_thruster_geometry
from thrust_mapper.result import AllocationResult
from thrust_mapper.thrust_allocator import (
    AccelerationCommand,
    AllocationError,
    InvalidCommandError,
    ThrustAllocator,
)
from thrust_mapper.vehicle import THRUSTER_ORDER


class ThrustMapperNode(Node):
    def __init__(self):
        super().__init__('thrust_mapper')

        # Declare parameters
        self.declare_parameter('vehicle_config', 'riptide.yaml')
        self.declare_parameter('geometry_source', '')  # '' keeps the file's setting

        config_path = self._resolve_config_path(
            self.get_parameter('vehicle_config').get_parameter_value().string_value
        )
        self.get_logger().info(f"Loading vehicle config from: {config_path}")
        self.config = load_config(config_path)

        # Observability toggles ('' keeps the file's setting)
        self.declare_parameter('log_solution', '')
        self.declare_parameter('report', '')
        log_solution = self._toggle('log_solution', self.config.log_solution)
        report = self._toggle('report', self.config.report)

        geometry_source = self.get_parameter('geometry_source').get_parameter_value().string_value
        geometry_source = geometry_source.lower() or self.config.geometry.source

        # Thruster geometry (fatal on failure)
        if geometry_source == 'config':
            geometry = self.config.geometry.static_geometry()
            self.get_logger().info("Using thruster positions from config")
        else:
            self.tf_buffer = Buffer()
            self.tf_listener = TransformListener(self.tf_buffer, self, spin_thread=True)
            geometry = lookup_thruster_geometry(
                self._lookup_position,
                base_frame=self.config.geometry.base_frame,
                frame_suffix=self.config.geometry.frame_suffix,
                timeout=self.config.geometry.lookup_timeout,
                logger=self.get_logger(),
            )
        self.get_logger().info(f"Thruster geometry: {geometry}")

        self.allocator = ThrustAllocator.from_config(
            self.config,
            geometry,
            publish=self._publish_result,
            clock=lambda: self.get_clock().now(),
            log_solution=log_solution,
            report=report,
            logger=self.get_logger(),
        )

        # Publishers
        self.thrust_pub = self.create_publisher(JointState, 'command/thrust', 1)
        self.status_pub = self.create_publisher(DiagnosticStatus, 'command/thrust/status', 1)

        # Subscriber (depth 1: a newer command supersedes a queued one)
        self.create_subscription(Accel, 'command/accel', self.accel_callback, 1)

        self.get_logger().info(
            f"Thrust mapper ready: mass={self.config.vehicle.mass:.4f} kg, "
            f"max_iterations={self.config.solver.max_iterations}, "
            f"linear_solver={self.config.solver.linear_solver}"
        )

    def _resolve_config_path(self, config_file: str) -> str:
        if os.path.isabs(config_file):
            return config_file
        try:
            # Try package share directory first
            pkg_dir = get_package_share_directory('thrust_mapper')
            return os.path.join(pkg_dir, 'config', config_file)
        except PackageNotFoundError:
            # Fall back to source tree
            return os.path.join(os.path.dirname(__file__), '..', 'config', config_file)

    def _toggle(self, name: str, file_value: bool) -> bool:
        value = self.get_parameter(name).get_parameter_value().string_value
        return resolve_toggle(value, file_value)

    def _lookup_position(self, base_frame: str, frame: str, timeout: float):
        """Origin of `frame` in `base_frame`, blocking up to `timeout` seconds."""
        try:
            transform = self.tf_buffer.lookup_transform(
                base_frame, frame, Time(), timeout=Duration(seconds=timeout)
            )
        except TransformException as exc:
            raise GeometryLookupError(str(exc)) from exc
        t = transform.transform.translation
        return (t.x, t.y, t.z)

    def accel_callback(self, msg: Accel):
        """Run one allocation cycle per acceleration command."""
        command = AccelerationCommand.from_vectors(
            (msg.linear.x, msg.linear.y, msg.linear.z),
            (msg.angular.x, msg.angular.y, msg.angular.z),
        )
        try:
            self.allocator.allocate(command)
        except InvalidCommandError as exc:
            self.get_logger().warning(f"Dropping command: {exc}")
        except AllocationError as exc:
            self.get_logger().error(f"Allocation failed, nothing published: {exc}")

    def _publish_result(self, result: AllocationResult):
        thrust = JointState()
        thrust.header.stamp = result.stamp.to_msg()
        thrust.name = [t.value for t in THRUSTER_ORDER]
        thrust.effort = [float(f) for f in result.force_vector()]
        self.thrust_pub.publish(thrust)

        summary = result.summary
        status = DiagnosticStatus()
        status.level = DiagnosticStatus.OK if summary.converged else DiagnosticStatus.WARN
        status.name = 'thrust_mapper'
        status.message = summary.message
        status.values = [
            KeyValue(key='converged', value=str(summary.converged)),
            KeyValue(key='iterations', value=str(summary.iterations)),
            KeyValue(key='cost', value=f"{summary.cost:.6e}"),
        ] + [
            KeyValue(key=f"residual_{axis}", value=f"{r:.6e}")
            for axis, r in result.residuals.items()
        ]
        self.status_pub.publish(status)


def main(args=None):
    rclpy.init(args=args)
    try:
        node = ThrustMapperNode()
    except GeometryLookupError as exc:
        get_logger('thrust_mapper').fatal(f"Thruster geometry unavailable: {exc}")
        rclpy.shutdown()
        sys.exit(1)
    try:
        rclpy.spin(node)
    except KeyboardInterrupt:
        pass
    finally:
        node.destroy_node()
        if rclpy.ok():
            rclpy.shutdown()


if __name__ == '__main__':
    main()
