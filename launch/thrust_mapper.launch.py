#!/usr/bin/env python3
"""
Launch file for the thrust mapper node.
"""
from launch import LaunchDescription
from launch_ros.actions import Node
from launch.actions import DeclareLaunchArgument
from launch.substitutions import LaunchConfiguration
from launch_ros.parameter_descriptions import ParameterValue


def generate_launch_description():
    # Declare arguments
    vehicle_config_arg = DeclareLaunchArgument(
        'vehicle_config',
        default_value='riptide.yaml',
        description='Vehicle configuration YAML (file name in share/config or absolute path)'
    )

    geometry_source_arg = DeclareLaunchArgument(
        'geometry_source',
        default_value='',
        description="Thruster positions from 'tf' or 'config' (empty: use the config file)"
    )

    log_solution_arg = DeclareLaunchArgument(
        'log_solution',
        default_value='',
        description='Log initial guess and solved forces at debug level (empty: use the config file)'
    )

    report_arg = DeclareLaunchArgument(
        'report',
        default_value='',
        description='Log the solver summary for every command (empty: use the config file)'
    )

    # Thrust mapper node
    thrust_mapper_node = Node(
        package='thrust_mapper',
        executable='thrust_mapper_node',
        name='thrust_mapper',
        output='screen',
        parameters=[{
            'vehicle_config': LaunchConfiguration('vehicle_config'),
            'geometry_source': ParameterValue(LaunchConfiguration('geometry_source'), value_type=str),
            'log_solution': ParameterValue(LaunchConfiguration('log_solution'), value_type=str),
            'report': ParameterValue(LaunchConfiguration('report'), value_type=str),
        }]
    )

    return LaunchDescription([
        vehicle_config_arg,
        geometry_source_arg,
        log_solution_arg,
        report_arg,
        thrust_mapper_node,
    ])
